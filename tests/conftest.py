import os

# Point the app at a shared in-memory database before desk_portal.config is imported.
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.setdefault('SESSION_COOKIE_SECURE', 'false')
