# api/backend/deploy_sftp.py
import os
import posixpath
from pathlib import Path
from typing import Iterable, List

import paramiko

BACKEND_DIR = Path(__file__).resolve().parent

# ВАЖНО: на шаред-хостинге часто нельзя писать в /www/... по SFTP.
# Грузим в относительный путь, переопределяется через SFTP_REMOTE_DIR.
DEFAULT_REMOTE_DIR = "radiosignaldb/api/backend"

FILES = [
    "app_flask.py",
    "classify.py",
    "config.py",
    "csv_import.py",
    "db.py",
    "errors.py",
    "filtering.py",
    "forms.py",
    "grouping.py",
    "models.py",
    "store.py",
    "votes.py",
]


def upload_files(sftp, remote_dir: str, files: Iterable[str] = FILES, local_dir: Path = BACKEND_DIR) -> List[str]:
    # НЕ создаём папки. Просто проверяем, что папка существует.
    try:
        sftp.stat(remote_dir)
    except IOError as e:
        raise SystemExit(
            f"[deploy_sftp] Remote dir not accessible: {remote_dir}\n"
            f"Set SFTP_REMOTE_DIR to an existing directory.\n"
            f"Original error: {e}"
        )

    uploaded = []
    for fn in files:
        local_path = local_dir / fn
        if not local_path.exists():
            print(f"[deploy_sftp] skip missing: {local_path}")
            continue

        remote_path = posixpath.join(remote_dir, fn)
        print(f"[deploy_sftp] put {local_path} -> {remote_path}")
        sftp.put(str(local_path), remote_path)
        uploaded.append(remote_path)
    return uploaded


def main():
    host = os.environ["SFTP_HOST"]
    user = os.environ["SFTP_USER"]
    password = os.environ["SFTP_PASSWORD"]
    port = int(os.environ.get("SFTP_PORT", "22"))
    remote_dir = os.environ.get("SFTP_REMOTE_DIR", DEFAULT_REMOTE_DIR)

    ssh = paramiko.SSHClient()
    ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    ssh.connect(host, port=port, username=user, password=password)

    sftp = ssh.open_sftp()
    try:
        upload_files(sftp, remote_dir)
    finally:
        sftp.close()
        ssh.close()
    print("[deploy_sftp] done")


if __name__ == "__main__":
    main()
