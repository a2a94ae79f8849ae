# rewards_api/wsgi.py
from rewards_api import create_app

app = create_app()
