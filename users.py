import uuid

from sqlalchemy import select

from errors import BadRequest, Conflict, NotFound, guarded
from models import User, UserRole

PROFILE_FIELDS = ("username", "email", "first_name", "last_name", "phone", "role")
PHOTO_BUCKET = "profile-photos"


class UserService:
    def __init__(self, session, storage=None):
        self.session = session
        self.storage = storage

    def _taken(self, column, value, exclude_id=None):
        existing = self.session.scalar(select(User).where(column == value))
        return existing is not None and existing.id != exclude_id

    def _check_unique(self, data, exclude_id=None):
        if data.get("email") and self._taken(User.email, data["email"], exclude_id):
            raise Conflict("That email is already registered")
        if data.get("username") and self._taken(User.username, data["username"], exclude_id):
            raise Conflict("That username is already taken")

    @guarded("Error creating the user")
    def create(self, data):
        for field in ("username", "email", "password"):
            if not data.get(field):
                raise BadRequest(f"'{field}' is required")
        if data.get("role", UserRole.CUSTOMER) not in UserRole.ALL:
            raise BadRequest("Unknown role")
        self._check_unique(data)

        user = User(**{f: data[f] for f in PROFILE_FIELDS if data.get(f) is not None})
        user.set_password(data["password"])
        self.session.add(user)
        self.session.commit()
        return user

    @guarded("Error fetching the users")
    def find_all(self):
        return list(self.session.scalars(select(User).order_by(User.id)))

    @guarded("Error fetching the user")
    def find_one(self, user_id):
        user = self.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    @guarded("Error fetching the user by email")
    def find_by_email(self, email):
        user = self.session.scalar(select(User).where(User.email == email))
        if not user:
            raise NotFound("User not found")
        return user

    @guarded("Error updating the user")
    def update(self, user_id, data):
        user = self.find_one(user_id)
        if data.get("role") is not None and data["role"] not in UserRole.ALL:
            raise BadRequest("Unknown role")
        self._check_unique(data, exclude_id=user.id)

        for field in PROFILE_FIELDS:
            if data.get(field) is not None:
                setattr(user, field, data[field])
        if data.get("password"):
            user.set_password(data["password"])
        self.session.commit()
        return user

    @guarded("Error deactivating the user")
    def deactivate(self, user_id):
        user = self.find_one(user_id)
        user.status = not user.status
        self.session.commit()
        return {"message": "User status changed", "status": user.status}

    @guarded("Error deleting the user")
    def remove(self, user_id):
        user = self.find_one(user_id)
        if user.orders:
            raise Conflict("User has orders, deactivate the account instead")
        self.session.delete(user)
        self.session.commit()
        return {"message": "User deleted"}

    @guarded("Error changing the password")
    def change_password(self, user_id, current_password, new_password):
        user = self.find_one(user_id)
        if not user.check_password(current_password):
            raise BadRequest("Current password is incorrect")
        if not new_password:
            raise BadRequest("New password must not be empty")
        user.set_password(new_password)
        self.session.commit()
        return {"message": "Password changed"}

    @guarded("Error validating the password")
    def validate_password(self, email, password):
        user = self.session.scalar(select(User).where(User.email == email))
        if not user or not user.check_password(password):
            return None
        return user

    @guarded("Error uploading the photo")
    def upload_photo(self, user_id, data, content_type, filename=None):
        user = self.find_one(user_id)
        if not data:
            raise BadRequest("No file uploaded")
        if not (content_type or "").startswith("image/"):
            raise BadRequest("Only image uploads are allowed")

        previous = user.photo_url
        # client names can repeat
        file_name = f"{uuid.uuid4().hex}-{filename}" if filename else None
        stored = self.storage.upload_file(PHOTO_BUCKET, data, content_type, file_name=file_name)
        user.photo_url = stored["public_url"]
        self.session.commit()

        if previous:
            self.storage.delete_file(PHOTO_BUCKET, previous.rsplit("/", 1)[-1])
        return user
