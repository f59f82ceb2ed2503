from typing import Optional
import datetime
import decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, ForeignKeyConstraint, Index, Integer, LargeBinary, Numeric, PrimaryKeyConstraint, SmallInteger, String, Text, UniqueConstraint, func, true
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Categories(Base):
    __tablename__ = 'categories'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='categories_pkey'),
        UniqueConstraint('name', name='categories_name_key'),
        UniqueConstraint('slug', name='categories_slug_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    books: Mapped[list['Books']] = relationship('Books', back_populates='category', passive_deletes=True)
    tutorials: Mapped[list['Tutorials']] = relationship('Tutorials', back_populates='category', passive_deletes=True)


class Role(Base):
    __tablename__ = 'roles'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='roles_pkey'),
        UniqueConstraint('name', name='roles_name_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    user_roles: Mapped[list['UserRoles']] = relationship('UserRoles', back_populates='role', cascade='all, delete-orphan')


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='users_pkey'),
        UniqueConstraint('username', name='users_username_key'),
        UniqueConstraint('email', name='users_email_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(50))
    last_name: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    last_login: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)

    user_roles: Mapped[list['UserRoles']] = relationship('UserRoles', back_populates='user', cascade='all, delete-orphan')
    ratings: Mapped[list['Ratings']] = relationship('Ratings', back_populates='user', cascade='all, delete-orphan')

    @property
    def role_names(self) -> list[str]:
        return [ur.role.name for ur in self.user_roles if ur.role]


class UserRoles(Base):
    __tablename__ = 'user_roles'
    __table_args__ = (
        ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE', name='user_roles_role_fk'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='user_roles_user_fk'),
        PrimaryKeyConstraint('user_id', 'role_id', name='user_roles_pk'),
    )

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    role_id: Mapped[int] = mapped_column(Integer, nullable=False)

    role: Mapped['Role'] = relationship('Role', back_populates='user_roles')
    user: Mapped['User'] = relationship('User', back_populates='user_roles')


class Books(Base):
    __tablename__ = 'books'
    __table_args__ = (
        ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT', name='books_category_fk'),
        PrimaryKeyConstraint('id', name='books_pkey'),
        Index('idx_book_title', 'title'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    book_type: Mapped[str] = mapped_column(Enum('file', 'link', 'purchase', name='book_type'), nullable=False, server_default='file')
    description: Mapped[Optional[str]] = mapped_column(Text)
    isbn: Mapped[Optional[str]] = mapped_column(String(20))
    # /uploads/..., s3://bucket/key hoặc tên file gốc khi nội dung nằm inline
    file_path: Mapped[Optional[str]] = mapped_column(String(500))
    file_content: Mapped[Optional[str]] = mapped_column(Text)
    file_size: Mapped[Optional[int]] = mapped_column(Integer)
    file_type: Mapped[Optional[str]] = mapped_column(String(100))
    external_link: Mapped[Optional[str]] = mapped_column(String(500))
    purchase_link: Mapped[Optional[str]] = mapped_column(String(500))
    price: Mapped[Optional[decimal.Decimal]] = mapped_column(Numeric(10, 2))
    currency: Mapped[Optional[str]] = mapped_column(String(3), server_default='USD')
    cover_image_path: Mapped[Optional[str]] = mapped_column(String(500))
    thumbnail_content: Mapped[Optional[bytes]] = mapped_column(LargeBinary)
    thumbnail_mime: Mapped[Optional[str]] = mapped_column(String(100))
    # cover_image_path mà thumbnail_content được sinh ra từ đó
    thumbnail_source: Mapped[Optional[str]] = mapped_column(String(500))
    published_year: Mapped[Optional[int]] = mapped_column(SmallInteger)
    page_count: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    category: Mapped['Categories'] = relationship('Categories', back_populates='books')


class Tutorials(Base):
    __tablename__ = 'tutorials'
    __table_args__ = (
        ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT', name='tutorials_category_fk'),
        PrimaryKeyConstraint('id', name='tutorials_pkey'),
        Index('idx_tutorial_title', 'title'),
        Index('idx_tutorial_creator', 'creator'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(Enum('Beginner', 'Intermediate', 'Advanced', name='tutorial_difficulty'), nullable=False)
    content_type: Mapped[str] = mapped_column(Enum('Video', 'PDF', name='tutorial_content_type'), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    creator: Mapped[Optional[str]] = mapped_column(String(255))
    content_url: Mapped[Optional[str]] = mapped_column(String(255))
    embed_url: Mapped[Optional[str]] = mapped_column(String(1000))
    file_path: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    category: Mapped['Categories'] = relationship('Categories', back_populates='tutorials')


class Ratings(Base):
    __tablename__ = 'ratings'
    __table_args__ = (
        CheckConstraint('vote IN (1, -1)', name='ratings_vote_check'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='ratings_user_fk'),
        PrimaryKeyConstraint('id', name='ratings_pkey'),
        UniqueConstraint('user_id', 'content_type', 'content_id', name='uq_user_content_rating'),
        Index('idx_ratings_content', 'content_id', 'content_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(Enum('book', 'tutorial', name='rating_content_type'), nullable=False)
    vote: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    review: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now())

    user: Mapped['User'] = relationship('User', back_populates='ratings')


class DownloadLogs(Base):
    __tablename__ = 'download_logs'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL', name='download_logs_user_fk'),
        PrimaryKeyConstraint('id', name='download_logs_pkey'),
        Index('idx_download_logs_content', 'content_id', 'content_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, server_default='book')
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    downloaded_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now())


class ViewLogs(Base):
    __tablename__ = 'view_logs'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL', name='view_logs_user_fk'),
        PrimaryKeyConstraint('id', name='view_logs_pkey'),
        Index('idx_view_logs_content', 'content_id', 'content_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, server_default='tutorial')
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    viewed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, server_default=func.now())
