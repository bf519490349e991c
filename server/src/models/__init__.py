from models.base import Base
from models.movie import Movie
from models.participant import Participant
from models.proposal import Proposal
from models.room import Room, RoomStatus
from models.vote import Vote

__all__ = ["Base", "Movie", "Participant", "Proposal", "Room", "RoomStatus", "Vote"]
