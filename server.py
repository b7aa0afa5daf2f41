# Deploy: set secrets and run 'uvicorn server:app --host=0.0.0.0 --port=9060'
from slack_cheers.api import create_app
from slack_cheers.config import load_settings
from slack_cheers.main import configure_logging

settings = load_settings()
configure_logging(settings.log_level)

app = create_app(settings)

__all__ = ["app"]
