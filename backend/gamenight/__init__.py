from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from gamenight.errors import NotAuthenticated, register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from gamenight.main import main
    flask_app.register_blueprint(main)

    from gamenight.api.host import host
    flask_app.register_blueprint(host, url_prefix='/api/host')

    from gamenight.api.patrons import patrons
    flask_app.register_blueprint(patrons, url_prefix='/api')

    from gamenight.api.sportsdata import sportsdata
    flask_app.register_blueprint(sportsdata, url_prefix='/api/sportsdata')

    # Register Socket.IO event handlers
    from gamenight.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from gamenight.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        raise NotAuthenticated()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from gamenight.models import Bar
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed a demo host with a bar
            user = User(username='host')
            user.set_password('password')
            db.session.add(user)
            db.session.flush()
            db.session.add(Bar(owner_user_id=user.id, name='Demo Bar'))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
