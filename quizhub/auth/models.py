from datetime import datetime
from flask_login import UserMixin

from quizhub import db


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # 'student', 'teacher' or 'admin'
    role = db.Column(db.String(20), nullable=False, default="student")
    name = db.Column(db.String(255), nullable=False)

    # --- Student Specific Fields ---
    usn = db.Column(db.String(20), unique=True, nullable=True)  # External id used for QR/access-key entry

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.email} ({self.role})>"

    def is_student(self) -> bool:
        return self.role == "student"

    def is_teacher(self) -> bool:
        return self.role == "teacher"

    def is_admin(self) -> bool:
        return self.role == "admin"
