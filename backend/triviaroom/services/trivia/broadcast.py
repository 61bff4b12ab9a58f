class SocketIOBroadcaster:
    """Delivers engine events through Flask-SocketIO.

    ``to`` is either a room id (every joined connection) or a single
    connection id, since each connection is implicitly a room of its own.
    """

    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, event, payload, to):
        self.socketio.emit(event, payload, to=to, namespace=self.namespace)
