import enum
import sqlite3
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


class UserStatus(str, enum.Enum):
    USER = 'User'
    EDITOR = 'Editor'
    ADMIN = 'Admin'


class ProjectStatus(str, enum.Enum):
    IN_PROGRESS = 'InProgress'
    SUSPENDED = 'Suspended'
    COMPLETED = 'Completed'


# ============================================
# 1. Project membership (many-to-many)
# ============================================
project_users = db.Table('project_users',
    db.Column('project_id', db.Integer, db.ForeignKey('project.id', ondelete='CASCADE'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True),
    db.Column('joined_at', db.DateTime, default=datetime.utcnow)
)

# ============================================
# 2. User
# ============================================
class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    login = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(50), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30))
    user_status = db.Column(db.String(20), nullable=False, default=UserStatus.USER.value)
    registration_date = db.Column(db.DateTime, default=datetime.utcnow)
    last_login_date = db.Column(db.DateTime)
    photo = db.Column(db.LargeBinary)

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

# ============================================
# 3. ProjectAdmin
# ============================================
class ProjectAdmin(db.Model):
    """Grants a user administrative rights over one or more projects."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                        nullable=False, unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', backref=db.backref(
        'admin_role', uselist=False, cascade='all,delete-orphan'))

# ============================================
# 4. Project
# ============================================
class Project(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(100))
    status = db.Column(db.String(20), nullable=False, default=ProjectStatus.IN_PROGRESS.value)
    photo = db.Column(db.LargeBinary)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    admin_id = db.Column(db.Integer, db.ForeignKey('project_admin.id', ondelete='SET NULL'), nullable=True)

    admin = db.relationship('ProjectAdmin', backref=db.backref('projects', lazy=True))
    users = db.relationship('User', secondary=project_users, lazy=True,
                            backref=db.backref('projects', lazy=True))
    desks = db.relationship('Desk', backref='project', lazy=True)

    __table_args__ = (
        db.Index('idx_project_status', 'status'),
    )

# ============================================
# 5. Desk
# ============================================
class Desk(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(100))
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    photo = db.Column(db.LargeBinary)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    admin_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='RESTRICT'), nullable=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id', ondelete='SET NULL'), nullable=True)

    # The restricted side never lets the ORM null out admin_id
    admin = db.relationship('User', backref=db.backref('desks', lazy=True, passive_deletes='all'))
    columns = db.relationship('Column', backref='desk', lazy=True,
                              cascade='all,delete-orphan', order_by='Column.order')

# ============================================
# 6. Column
# ============================================
class Column(db.Model):
    __tablename__ = 'desk_column'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(100))
    desk_id = db.Column(db.Integer, db.ForeignKey('desk.id', ondelete='CASCADE'), nullable=False)

# ============================================
# 7. Task
# ============================================
class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(100))
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    file = db.Column(db.LargeBinary)
    photo = db.Column(db.LargeBinary)

    desk_id = db.Column(db.Integer, db.ForeignKey('desk.id', ondelete='RESTRICT'), nullable=False)
    column_id = db.Column(db.Integer, db.ForeignKey('desk_column.id', ondelete='RESTRICT'), nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='RESTRICT'), nullable=True)
    executor_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='RESTRICT'), nullable=True)

    desk = db.relationship('Desk', backref=db.backref('tasks', lazy=True, passive_deletes='all'))
    column = db.relationship('Column', backref=db.backref('tasks', lazy=True, passive_deletes='all'))
    creator = db.relationship('User', foreign_keys=[creator_id],
                              backref=db.backref('created_tasks', lazy=True, passive_deletes='all'))
    executor = db.relationship('User', foreign_keys=[executor_id],
                               backref=db.backref('executed_tasks', lazy=True, passive_deletes='all'))

    __table_args__ = (
        db.Index('idx_task_desk', 'desk_id'),
        db.Index('idx_task_column', 'column_id'),
        db.Index('idx_task_executor', 'executor_id'),
    )
