"""
WSGI Entry Point for the Rota Requests API

Usage with Gunicorn:
    gunicorn --config gunicorn_config.py wsgi:app
"""
import os

# Set production environment if not already set
if 'FLASK_ENV' not in os.environ:
    os.environ['FLASK_ENV'] = 'production'

from rota_requests import create_app, init_db

app = create_app(os.environ['FLASK_ENV'])

# Schema is normally managed with Flask-Migrate; create_all only fills gaps
try:
    init_db(app)
except Exception as e:
    app.logger.warning(f"Database initialization skipped or failed: {e}")

application = app

if __name__ == "__main__":
    # Development only; use Gunicorn in production
    app.run(debug=True, host='0.0.0.0', port=8000)
