from django.apps import AppConfig


class ConverterConfig(AppConfig):
    name = 'converter'

    def ready(self):
        """Create the staging and output directories once per process"""
        from converter.service.artifacts import get_artifact_store

        get_artifact_store().ensure_directories()
