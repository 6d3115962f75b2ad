import os


class Config:
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))

    # "json" keeps the whole store in one file, "sqlalchemy" keeps one row per
    # collection in DB_URL, "memory" never touches disk.
    STORE_BACKEND = os.getenv("STORE_BACKEND", "json")
    DATA_FILE = os.getenv("DATA_FILE", os.path.join(BASE_DIR, "data", "db.json"))
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DB_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "data", "moveit.db"),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SECRET_KEY = os.getenv("SECRET_KEY", "supersecret")
    ADMIN_USER = os.getenv("ADMIN_USER", "admin")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
    ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin User")

    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_BYTES", str(16 * 1024 * 1024)))

    LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
