from verdict import create_app, socketio
from verdict.services.outcomes.scheduler import start_deadline_sweeper

app = create_app()

if __name__ == '__main__':
    start_deadline_sweeper(app)
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True)
