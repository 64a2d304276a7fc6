from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from verdict.routes import main
    flask_app.register_blueprint(main)

    from verdict.api.events import events
    flask_app.register_blueprint(events, url_prefix='/api')

    from verdict.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo squad."""
        from verdict.models import User, Squad, SquadMember
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            squad = Squad(name='Demo Squad')
            db.session.add(squad)
            db.session.flush()
            for name in ['Ava', 'Ben', 'Cleo', 'Dev', 'Eli', 'Fay']:
                user = User(display_name=name)
                db.session.add(user)
                db.session.flush()
                db.session.add(SquadMember(squad_id=squad.id, user_id=user.id))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('generate-events')
    def generate_events_command():
        """Creates today's event for every squad that has none yet."""
        from verdict.services.outcomes.lifecycle import generate_daily_events
        with flask_app.app_context():
            created = generate_daily_events()
            print(f'Generated {len(created)} event(s).')

    @click.command('sweep-deadlines')
    def sweep_deadlines_command():
        """Runs one pass of the lifecycle and challenge-deadline sweep."""
        from verdict.services.outcomes.scheduler import run_maintenance
        with flask_app.app_context():
            summary = run_maintenance()
            print(
                f"opened={summary['opened']} closed={summary['closed']} "
                f"resolved={summary['resolved']}"
            )

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(generate_events_command)
    flask_app.cli.add_command(sweep_deadlines_command)

    return flask_app
