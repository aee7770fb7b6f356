"""
WSGI entry point.

    gunicorn --config gunicorn.conf.py "app:application"

Running the module directly starts the Flask development server.
"""

import os

from hospital_meals.app import create_app

application = create_app()
app = application


if __name__ == '__main__':
    application.run(
        host=os.getenv('HOST', '127.0.0.1'),
        port=int(os.getenv('PORT', '5000')),
        debug=application.config.get('DEBUG', False),
    )
