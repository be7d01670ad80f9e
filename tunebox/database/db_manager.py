# tunebox/database/db_manager.py
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash
import os
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.engine import make_url
from sqlalchemy.orm import relationship

# Initialize the SQLAlchemy object
db = SQLAlchemy()
logger = logging.getLogger(__name__)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Linked Spotify account
    spotify_user_id = db.Column(db.String(128), nullable=True)
    spotify_access_token = db.Column(db.Text, nullable=True)
    spotify_refresh_token = db.Column(db.Text, nullable=True)
    spotify_expires_at = db.Column(db.Integer, nullable=True)
    spotify_product = db.Column(db.String(32), nullable=True)

    playlists = relationship(
        "Playlist",
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy=True,
    )
    favorites = relationship(
        "Favorite",
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def get_id(self) -> str:
        return str(self.id)

    @property
    def has_spotify(self) -> bool:
        return bool(self.spotify_access_token)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "spotify_linked": self.has_spotify,
            "premium": (self.spotify_product or "").lower() == "premium",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Artist(db.Model):
    __tablename__ = 'artists'

    id = db.Column(db.String(128), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    image_url = db.Column(db.String(500), nullable=True)
    genres = db.Column(db.JSON, nullable=True)  # list[str]
    popularity = db.Column(db.Integer, nullable=True)

    songs = relationship('Song', back_populates='artist', lazy=True)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'image_url': self.image_url,
            'genres': list(self.genres or []),
            'popularity': self.popularity or 0,
        }


class Song(db.Model):
    __tablename__ = 'songs'

    # Catalogue ids or Spotify track ids
    id = db.Column(db.String(128), primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    duration = db.Column(db.Integer, nullable=False, default=0)
    audio_url = db.Column(db.String(500), nullable=False, default='')
    image_url = db.Column(db.String(500), nullable=True)
    spotify_uri = db.Column(db.String(128), nullable=True)
    artist_id = db.Column(db.String(128), ForeignKey('artists.id', ondelete='SET NULL'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    artist = relationship('Artist', back_populates='songs', lazy='joined')

    __table_args__ = (
        db.CheckConstraint('duration >= 0', name='ck_songs_duration_non_negative'),
    )

    def to_dict(self) -> dict:
        """Canonical song shape (same keys as tunebox.models.dto.Song)."""
        audio_url = self.audio_url or ''
        return {
            'id': self.id,
            'title': self.title,
            'duration': self.duration or 0,
            'audio_url': audio_url,
            'image_url': self.image_url,
            'artists': {
                'id': self.artist.id if self.artist else (self.artist_id or ''),
                'name': self.artist.name if self.artist else 'Unknown Artist',
            },
            'artist_id': self.artist_id or '',
            'hasPreview': bool(audio_url),
            'spotifyUri': self.spotify_uri,
        }


class Playlist(db.Model):
    __tablename__ = 'playlists'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    owner = relationship('User', back_populates='playlists')
    entries = relationship(
        'PlaylistSong',
        back_populates='playlist',
        order_by='PlaylistSong.position',
        cascade='all, delete-orphan',
        lazy='selectin',
    )

    def to_dict(self, *, include_songs: bool = True) -> dict:
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'song_count': len(self.entries or []),
        }
        if include_songs:
            data['playlist_songs'] = [entry.to_dict() for entry in self.entries]
        return data


class PlaylistSong(db.Model):
    __tablename__ = 'playlist_songs'

    id = db.Column(db.Integer, primary_key=True)
    playlist_id = db.Column(
        db.Integer,
        ForeignKey('playlists.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    song_id = db.Column(
        db.String(128),
        ForeignKey('songs.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    added_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    playlist = relationship('Playlist', back_populates='entries')
    song = relationship('Song', lazy='joined')

    __table_args__ = (
        UniqueConstraint('playlist_id', 'song_id', name='uq_playlist_song_once'),
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'playlist_id': self.playlist_id,
            'song_id': self.song_id,
            'position': self.position,
            'added_at': self.added_at.isoformat() if self.added_at else None,
            'songs': self.song.to_dict() if self.song else None,
        }


class Favorite(db.Model):
    __tablename__ = 'favorites'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    song_id = db.Column(
        db.String(128),
        ForeignKey('songs.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    owner = relationship('User', back_populates='favorites')
    song = relationship('Song', lazy='joined')

    __table_args__ = (
        UniqueConstraint('user_id', 'song_id', name='uq_favorites_user_song'),
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'song_id': self.song_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'songs': self.song.to_dict() if self.song else None,
        }


def upsert_song(payload: dict) -> Song:
    """Insert or refresh a song (and its artist) from canonical song JSON.

    The caller owns the transaction; nothing is committed here.
    """
    from tunebox.models.dto import Song as SongDTO

    dto = SongDTO.model_validate(payload)
    artist: Optional[Artist] = None
    if dto.artist_id:
        artist = db.session.get(Artist, dto.artist_id)
        if artist is None:
            artist = Artist(id=dto.artist_id, name=dto.artist_name)
            db.session.add(artist)

    song = db.session.get(Song, dto.id)
    if song is None:
        song = Song(id=dto.id)
        db.session.add(song)
    song.title = dto.title
    song.duration = dto.duration
    song.audio_url = dto.audio_url
    song.image_url = dto.image_url
    song.spotify_uri = dto.spotify_uri
    song.artist_id = artist.id if artist else None
    song.artist = artist
    return song


def seed_catalog() -> int:
    """Load the fallback catalogue into an empty songs table; returns rows added."""
    from tunebox.domain.catalog.fallback import fallback_artists, fallback_songs

    if db.session.query(Song.id).first() is not None:
        return 0
    for artist in fallback_artists():
        if db.session.get(Artist, artist.id) is None:
            db.session.add(Artist(**artist.model_dump()))
    db.session.flush()
    songs = fallback_songs()
    for song in songs:
        upsert_song(song.to_wire())
    db.session.commit()
    logger.info("Seeded %s catalogue songs.", len(songs))
    return len(songs)


def initialize_database(app):
    """
    Initializes the SQLAlchemy extension with the Flask app instance
    and creates all database tables if they don't already exist.
    """
    db.init_app(app)
    # Ensure the instance folder exists for SQLite database file
    instance_path = app.instance_path
    if not os.path.exists(instance_path):
        os.makedirs(instance_path)
        logger.info("Created instance folder: %s", instance_path)

    # Ensure the directory for the configured SQLite file exists
    uri = app.config.get('SQLALCHEMY_DATABASE_URI')
    if uri:
        url = make_url(uri)
        # Only handle file-based SQLite (not :memory:)
        if url.get_backend_name() == 'sqlite' and url.database and url.database != ':memory:':
            db_dir = os.path.dirname(url.database)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir, exist_ok=True)
                logger.info("Created SQLite DB directory: %s", db_dir)

    # Create database tables within the application context
    with app.app_context():
        db.create_all()
        logger.info("Database tables created or already exist.")
        if app.config.get('SEED_CATALOG'):
            seed_catalog()
