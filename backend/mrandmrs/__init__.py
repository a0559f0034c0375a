from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:8081",
    "http://127.0.0.1:8081",
    "http://localhost:19006",
    "http://127.0.0.1:19006",
]

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # External collaborators (payment, notifier, media store)
    from mrandmrs.services import gateways
    gateways.init_app(flask_app)

    # Import and register blueprints here
    from mrandmrs.main import main
    flask_app.register_blueprint(main)

    from mrandmrs.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from mrandmrs.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    # Identity comes from the upstream auth provider on every request
    from mrandmrs.auth import load_actor_from_request

    login_manager.request_loader(load_actor_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required', 'kind': 'unauthenticated'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from mrandmrs.auth import Actor
        from mrandmrs.services.games.records import create_game
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed a demo game still being composed
            creator = Actor('demo-creator', 'creator@example.com', name='Demo Creator')
            create_game(creator, {
                'name': 'Demo game',
                'occasion': 'Anniversary',
                'interviewed_partner': {'name': 'Sam', 'email': 'sam@example.com'},
                'questions': [
                    {'text': 'What is my favourite colour?', 'type': 'free_text'},
                    {'text': 'Do I snore?', 'type': 'boolean'},
                    {'text': 'Coffee or tea?', 'type': 'single_choice', 'options': ['Coffee', 'Tea']},
                ],
            })
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
