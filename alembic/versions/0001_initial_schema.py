"""initial schema: libraries, artists, albums, tracks

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-01 09:00:00.000000

Hey future me - THE SYNC ENGINE SCHEMA!

KEY DESIGN DECISIONS:
1. tracks.file_path is UNIQUE - it is the idempotency key of the scanner
2. musicbrainz_id on artists/albums/tracks is nullable AND unique - an external id
   can be claimed once, and the store enforces it (auto-link turns a violation
   into a "Conflict" result)
3. tracks.missing is a flag, rows are never deleted by a scan
4. albums.total_discs defaults to 1 at the database level too
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the four core tables."""
    op.create_table(
        "libraries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("path", sa.String(1024), nullable=False, unique=True),
        sa.Column("last_scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "artists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sort_name", sa.String(255), nullable=False),
        sa.Column("musicbrainz_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_artists_name", "artists", ["name"])
    op.create_index("ix_artists_sort_name", "artists", ["sort_name"])
    op.create_index(
        "ix_artists_musicbrainz_id", "artists", ["musicbrainz_id"], unique=True
    )

    op.create_table(
        "albums",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("artists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("genre", sa.String(100), nullable=True),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("country", sa.String(10), nullable=True),
        sa.Column("cover_url", sa.String(1024), nullable=True),
        sa.Column("musicbrainz_id", sa.String(36), nullable=True),
        sa.Column("total_tracks", sa.Integer(), nullable=True),
        sa.Column("total_discs", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_albums_title", "albums", ["title"])
    op.create_index("ix_albums_title_artist", "albums", ["title", "artist_id"])
    op.create_index(
        "ix_albums_musicbrainz_id", "albums", ["musicbrainz_id"], unique=True
    )

    op.create_table(
        "tracks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("artists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "album_id",
            sa.String(36),
            sa.ForeignKey("albums.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("track_number", sa.Integer(), nullable=True),
        sa.Column("disc_number", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False, unique=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("format", sa.String(20), nullable=True),
        sa.Column("bitrate", sa.Integer(), nullable=True),
        sa.Column("sample_rate", sa.Integer(), nullable=True),
        sa.Column("channels", sa.Integer(), nullable=True),
        sa.Column("musicbrainz_id", sa.String(36), nullable=True),
        sa.Column("missing", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tracks_album_id", "tracks", ["album_id"])
    op.create_index("ix_tracks_artist_id", "tracks", ["artist_id"])
    op.create_index("ix_tracks_missing", "tracks", ["missing"])
    op.create_index(
        "ix_tracks_musicbrainz_id", "tracks", ["musicbrainz_id"], unique=True
    )


def downgrade() -> None:
    """Drop everything (tracks first, they reference the rest)."""
    op.drop_index("ix_tracks_musicbrainz_id", table_name="tracks")
    op.drop_index("ix_tracks_missing", table_name="tracks")
    op.drop_index("ix_tracks_artist_id", table_name="tracks")
    op.drop_index("ix_tracks_album_id", table_name="tracks")
    op.drop_table("tracks")

    op.drop_index("ix_albums_musicbrainz_id", table_name="albums")
    op.drop_index("ix_albums_title_artist", table_name="albums")
    op.drop_index("ix_albums_title", table_name="albums")
    op.drop_table("albums")

    op.drop_index("ix_artists_musicbrainz_id", table_name="artists")
    op.drop_index("ix_artists_sort_name", table_name="artists")
    op.drop_index("ix_artists_name", table_name="artists")
    op.drop_table("artists")

    op.drop_table("libraries")
