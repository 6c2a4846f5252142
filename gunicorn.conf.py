import settings

bind = f"{settings.HOST}:{settings.PORT}"
workers = 2          # bump to 3–4 if CPU allows
threads = 4
timeout = int(settings.TIMEOUT * 3)
graceful_timeout = 30
keepalive = 5
preload_app = True
wsgi_app = "app:app"
