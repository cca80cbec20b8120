from .errors import NotFoundError
from .schemas import ClientInput, ClientPatch, changes, reject_nulls, validate


def search(clients, term):
    """Case-insensitive match on name, email and company."""
    term = (term or '').strip().lower()
    if not term:
        return list(clients)
    return [
        client for client in clients
        if any(term in (client.get(key) or '').lower() for key in ('name', 'email', 'company'))
    ]


class ClientRecordManager:
    """Client CRUD. Every read and write is scoped to the owning user."""

    search = staticmethod(search)

    def __init__(self, store):
        self.store = store

    def list(self, user_id):
        return self.store.select('clients', {'user_id': user_id}, order_by='created_at', desc=True)

    def get(self, client_id, user_id):
        client = self.store.get('clients', {'id': client_id, 'user_id': user_id})
        if client is None:
            raise NotFoundError('Client not found')
        return client

    def add(self, user_id, data):
        client = validate(ClientInput, data)
        return self.store.insert('clients', [dict(client.model_dump(), user_id=user_id)])[0]

    def update(self, client_id, user_id, data):
        values = reject_nulls(changes(validate(ClientPatch, data)), ('name', 'email'))
        self.get(client_id, user_id)
        if not values:
            return self.get(client_id, user_id)
        return self.store.update('clients', values, {'id': client_id, 'user_id': user_id})[0]

    def delete(self, client_id, user_id):
        # Invoices billed to the client go with it
        self.get(client_id, user_id)
        self.store.delete('clients', {'id': client_id, 'user_id': user_id})
