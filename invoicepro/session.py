"""
Application state

``AppState`` holds who is signed in (identity + profile) for one caller. It is
built explicitly around three collaborators: the identity provider, the data
store holding profiles, and a key-value ``storage`` mapping where the session
is persisted between calls (Flask's ``session`` in the web app, a plain dict
in tests).

Lifecycle: ``initialize()`` restores from storage, ``login``/``register``
establish a session, ``logout()``/``teardown()`` clear it.
"""
import logging
from datetime import date, datetime

from .errors import AuthenticationError
from .identity import Identity
from .schemas import ProfilePatch, RegisterInput, changes, reject_nulls, validate

logger = logging.getLogger(__name__)

TOKEN_KEY = 'auth_token'
USER_KEY = 'auth_user'
PROFILE_KEY = 'auth_profile'
SESSION_KEYS = (TOKEN_KEY, USER_KEY, PROFILE_KEY)


def _storable(row):
    return {k: (v.isoformat() if isinstance(v, (date, datetime)) else v) for k, v in row.items()}


class AppState:

    def __init__(self, provider, store, storage):
        self.provider = provider
        self.store = store
        self.storage = storage
        self.user = None
        self.profile = None

    @property
    def is_authenticated(self):
        return self.user is not None

    @property
    def is_admin(self):
        return bool(self.profile and self.profile.get('is_admin'))

    @property
    def token(self):
        return self.storage.get(TOKEN_KEY)

    def initialize(self):
        """Restore the signed-in user from storage, if any."""
        user = self.storage.get(USER_KEY)
        profile = self.storage.get(PROFILE_KEY)
        if user and profile:
            try:
                self.user = Identity(**user)
            except TypeError:
                logger.warning("Discarding unreadable stored session")
                self.teardown()
                return None
            self.profile = profile
            return self.user

        token = self.token
        if not token:
            return None
        try:
            identity = self.provider.get_user(token)
        except AuthenticationError:
            logger.info("Stored session token rejected, clearing session")
            self.teardown()
            return None
        self._establish(token, identity)
        return self.user

    def teardown(self):
        for key in SESSION_KEYS:
            self.storage.pop(key, None)
        self.user = None
        self.profile = None

    def require_user(self):
        if self.user is None:
            raise AuthenticationError()
        return self.user

    def _load_profile(self, identity):
        profile = self.store.get('users', {'id': identity.id})
        if profile is None:
            # Signed up outside this app: give them a minimal profile
            name = identity.email.split('@')[0] or identity.email
            profile = self.store.insert('users', [{'id': identity.id, 'email': identity.email, 'name': name}])[0]
        return profile

    def _establish(self, token, identity):
        self.user = identity
        self.profile = self._load_profile(identity)
        self.storage[TOKEN_KEY] = token
        self.storage[USER_KEY] = identity.to_dict()
        self.storage[PROFILE_KEY] = _storable(self.profile)

    def login(self, email, password):
        session = self.provider.sign_in(email, password)
        self._establish(session.access_token, session.user)
        return self.user

    def register(self, data):
        payload = validate(RegisterInput, data)
        identity = self.provider.sign_up(payload.email, payload.password)
        return self.store.insert('users', [{
            'id': identity.id,
            'email': payload.email,
            'name': payload.name,
            'company': payload.company,
            'is_admin': False,
        }])[0]

    def logout(self):
        token = self.token
        try:
            if token:
                self.provider.sign_out(token)
        except AuthenticationError as e:
            logger.warning("Remote sign-out failed, clearing local session anyway: %s", e)
        finally:
            self.teardown()

    def update_profile(self, data):
        user = self.require_user()
        values = reject_nulls(changes(validate(ProfilePatch, data)), ('name',))
        if values:
            self.store.update('users', values, {'id': user.id})
        self.profile = self._load_profile(user)
        self.storage[PROFILE_KEY] = _storable(self.profile)
        return self.profile
