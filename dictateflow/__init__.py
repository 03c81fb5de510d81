"""DictateFlow - record, transcribe and keep a searchable history of dictation sessions."""

__version__ = "0.1.0"
