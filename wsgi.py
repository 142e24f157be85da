"""WSGI entry point."""

import os

from anithing import create_app, db

app = create_app(os.environ.get("FLASK_ENV", "production"))

# Tables are created on startup; schema changes go through flask db migrate
with app.app_context():
    db.create_all()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
