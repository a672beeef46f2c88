"""Modelos SQLAlchemy compatibles con Supabase"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from shared.database.connection import Base


def _uuid_str() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    # Mismo id que auth.users (Supabase Auth)
    id = Column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    display_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    title = Column(String, nullable=False)
    nft_enabled = Column(Boolean, nullable=False, default=False, server_default="false")
    nft_collection_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    tickets = relationship("Ticket", back_populates="event")


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    event_id = Column(Uuid(as_uuid=False), ForeignKey("events.id"), nullable=False, index=True)
    owner_id = Column(Uuid(as_uuid=False), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="active", server_default="active")  # active, used, cancelled
    qr_code_data = Column(JSON, nullable=True)
    qr_code_generated_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)

    # Relaciones
    event = relationship("Event", back_populates="tickets")
    owner = relationship("Profile", foreign_keys=[owner_id])


class Attendance(Base):
    """
    Un check-in por (ticket_id, event_id). El constraint único respalda el
    pre-check del servicio cuando dos scanners leen el mismo ticket a la vez.
    """
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("ticket_id", "event_id", name="attendance_ticket_event_key"),
    )

    id = Column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    ticket_id = Column(Uuid(as_uuid=False), ForeignKey("tickets.id"), nullable=False)
    event_id = Column(Uuid(as_uuid=False), ForeignKey("events.id"), nullable=False, index=True)
    attendee_id = Column(Uuid(as_uuid=False), ForeignKey("profiles.id"), nullable=False)
    checked_in_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    checked_in_by = Column(Uuid(as_uuid=False), ForeignKey("profiles.id"), nullable=True)
    check_in_location = Column(String, nullable=True)
    device_info = Column(JSON, nullable=True)
    qr_code_data = Column(JSON, nullable=True)

    # Campos del subsistema de minting (se actualizan después del check-in)
    nft_status = Column(String, nullable=True)  # pending, minted, failed
    nft_mint_address = Column(String, nullable=True)
    nft_metadata_uri = Column(String, nullable=True)
    nft_minted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    ticket = relationship("Ticket")
    attendee = relationship("Profile", foreign_keys=[attendee_id])
