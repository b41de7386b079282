"""nginx の server 設定を書き出す。

- Prod / Stage: `config/nginx/<host>` と `nginx.env`（nginx-proxy 用）
- それ以外: `config/nginx/drudock.localhost`
"""

from __future__ import annotations

import logging
from pathlib import Path

from drudock.compose import REMOTE_DISTS, ComposeProject
from drudock.config import ProjectConfig
from drudock.errors import ConfigWriteError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "drudock.localhost"

NGINX_TEMPLATE = r"""server {
    listen   80;
    listen   [::]:80;

    index index.php index.html;
    server_name %(host)s;
    error_log  /var/log/nginx/error.log;
    access_log /var/log/nginx/access.log;
    root /app/www;

    ## GENERIC
    sendfile off;

    client_max_body_size 20M;

    location = /favicon.ico {
        log_not_found off;
        access_log off;
    }

    location = /robots.txt {
        allow all;
        log_not_found off;
        access_log off;
    }

    location ~* \.(txt|log)$ {
        allow 192.168.0.0/16;
        deny all;
    }

    location ~ \..*/.*\.php$ {
        return 403;
    }

    location ~ ^/sites/.*/private/ {
        return 403;
    }

    # RFC 5785
    location ~* ^/.well-known/ {
        allow all;
    }

    location ~ (^|/)\. {
        return 403;
    }

    location @drupal {
        rewrite ^/(.*)$ /index.php?q=$1 last;
    }

    location / {
        try_files $uri @drupal;
    }

    location ~ /vendor/.*\.php$ {
        deny all;
        return 404;
    }

    location ~ \.php$ {
        fastcgi_split_path_info ^(.+\.php)(/.+)$;
        fastcgi_pass php:9000;
        fastcgi_index index.php;
        fastcgi_param SCRIPT_FILENAME $document_root$fastcgi_script_name;
        fastcgi_param PATH_INFO $fastcgi_path_info;
        fastcgi_param REMOTE_ADDR $http_x_real_ip;
        fastcgi_buffers 16 16k;
        fastcgi_buffer_size 32k;
        include fastcgi_params;
        fastcgi_read_timeout 300;
        fastcgi_cache  off;
        fastcgi_intercept_errors on;
        fastcgi_hide_header 'X-Drupal-Cache';
        fastcgi_hide_header 'X-Generator';
    }

    location @rewrite {
        rewrite ^/(.*)$ /index.php?q=$1;
    }

    location ~ ^/sites/.*/files/styles/ {
        try_files $uri @rewrite;
    }

    location ~* \.(js|css|png|jpg|jpeg|gif|ico)$ {
        expires max;
        log_not_found off;
    }
}
"""


def render_nginx_config(host: str) -> str:
    return NGINX_TEMPLATE % {"host": host or DEFAULT_HOST}


def render_nginx_env(host: str) -> str:
    return f"VIRTUAL_HOST={host}\nAPPS_PATH=~/app\nVIRTUAL_NETWORK=nginx-proxy\n"


def write_nginx_host(config: ProjectConfig, project: ComposeProject) -> list[Path]:
    """設定を書き出し、書いたファイルの一覧を返す。"""
    host = config.host or DEFAULT_HOST
    nginx_dir = project.docker_dir / "config" / "nginx"
    written: list[Path] = []
    try:
        nginx_dir.mkdir(parents=True, exist_ok=True)
        if config.dist in REMOTE_DISTS:
            target = nginx_dir / host
            target.write_text(render_nginx_config(host), encoding="utf-8")
            env_path = project.docker_dir / "nginx.env"
            env_path.write_text(render_nginx_env(host), encoding="utf-8")
            written += [target, env_path]
        else:
            target = nginx_dir / DEFAULT_HOST
            target.write_text(render_nginx_config(host), encoding="utf-8")
            written.append(target)
    except OSError as e:
        raise ConfigWriteError(f"Cannot write nginx config: {e}") from e

    logger.info("nginx host=%s files=%s", host, [str(p) for p in written])
    return written
