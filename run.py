# /run.py
import os

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from mediconnect import create_app

app = create_app(os.environ.get('FLASK_CONFIG', 'default'))

if __name__ == '__main__':
    app.run(host='127.0.0.1', port=int(os.environ.get('PORT', 5000)))
