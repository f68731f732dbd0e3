import mimetypes
import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename


class LocalStorage:
    """Bucket/file object store on the local filesystem.

    Buckets are sub-directories of ``root`` and files are served publicly
    under ``base_url/<bucket>/<file>``.
    """

    def __init__(self, root, base_url):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def _bucket_folder(self, bucket):
        folder = os.path.join(self.root, secure_filename(bucket))
        if not os.path.isdir(folder):
            current_app.logger.warning(f'Bucket "{bucket}" not found, creating it')
            os.makedirs(folder, exist_ok=True)
        return folder

    @staticmethod
    def _extension(content_type):
        ext = mimetypes.guess_extension(content_type or "") or ".bin"
        return ".jpg" if ext == ".jpe" else ext

    def upload_file(self, bucket, data, content_type, file_name=None):
        name = secure_filename(file_name) if file_name else ""
        if not name:
            name = f"{uuid.uuid4()}{self._extension(content_type)}"
        current_app.logger.debug(f'Uploading "{name}" to bucket "{bucket}"')

        path = os.path.join(self._bucket_folder(bucket), name)
        with open(path, "wb") as fh:
            fh.write(data)

        return {
            "path": f"{secure_filename(bucket)}/{name}",
            "public_url": f"{self.base_url}/{secure_filename(bucket)}/{name}",
            "file_name": name,
        }

    def delete_file(self, bucket, file_name):
        if not file_name:
            current_app.logger.warning("Tried to delete a file without a name")
            return None
        path = os.path.join(self.root, secure_filename(bucket), secure_filename(file_name))
        if os.path.exists(path):
            os.remove(path)
        return {"deleted": file_name}


def get_storage():
    return LocalStorage(current_app.config["UPLOAD_FOLDER"], current_app.config["PUBLIC_URL_BASE"])
