# manage.py
import argparse
import getpass
import logging
import os
import sys

from app import create_app
from config import Config
from tunebox.database.db_manager import db, seed_catalog
from tunebox.errors import TuneBoxError
from tunebox.player.client import CollectionClient
from tunebox.player.console import build_console

logger = logging.getLogger(__name__)


def create_db():
    """Creates the database tables."""
    app = create_app({'SEED_CATALOG': False})
    with app.app_context():
        db_uri = app.config['SQLALCHEMY_DATABASE_URI']
        if db_uri.startswith('sqlite:///'):
            db_dir = os.path.dirname(db_uri[len('sqlite:///'):])
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        db.create_all()
        print(f"Database tables created at {db_uri}")


def seed():
    """Loads the fallback catalogue into an empty songs table."""
    app = create_app({'SEED_CATALOG': False})
    with app.app_context():
        added = seed_catalog()
    print(f"Seeded {added} songs" if added else "Catalogue already populated; nothing to seed")


def play(api_url=None, email=None):
    """Logs in against a running TuneBox API and starts the console player."""
    client = CollectionClient(api_url)
    email = email or input("Email: ")
    password = os.getenv('TUNEBOX_PASSWORD') or getpass.getpass("Password: ")
    try:
        client.login(email, password)
    except TuneBoxError as exc:
        print(f"Login failed ({exc.code})")
        return 1
    console = build_console(
        client,
        poll_interval=Config.PLAYER_POLL_INTERVAL_SECONDS,
        device_name=Config.PLAYER_DEVICE_NAME,
    )
    console.run()
    try:
        client.logout()
    except TuneBoxError as exc:
        logger.debug("Logout failed: %s", exc)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="manage.py", description="TuneBox management commands")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("create_db", help="create the database tables")
    sub.add_parser("seed", help="seed the fallback catalogue")
    play_parser = sub.add_parser("play", help="start the console player")
    play_parser.add_argument("--api-url", default=None, help="TuneBox API base URL")
    play_parser.add_argument("--email", default=None)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == 'create_db':
        create_db()
    elif args.command == 'seed':
        seed()
    elif args.command == 'play':
        return play(args.api_url, args.email)
    else:
        parser.print_help()
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
