"""
Seat reservation tokens.
A token is a signed JWT naming the room and seat it was issued for; reclaiming a seat
requires the exact token the seat currently holds, and a signature that checks out.
"""

import secrets
from datetime import datetime, timezone

from jose import JWTError, jwt

from tianxia.config import SEAT_TOKEN_SECRET

ALGORITHM = "HS256"


def create_seat_token(room_code: str, seat_index: int, secret: str = SEAT_TOKEN_SECRET) -> str:
    payload = {
        "room": room_code,
        "seat": seat_index,
        "iat": int(datetime.now(timezone.utc).timestamp()),
        # Re-selecting the same seat must never reproduce an older token
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_seat_token(token: str, secret: str = SEAT_TOKEN_SECRET) -> tuple[str, int] | None:
    """(room_code, seat_index) from a valid token, None if it is forged or malformed."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    room = payload.get("room")
    seat = payload.get("seat")
    if not isinstance(room, str) or not isinstance(seat, int):
        return None
    return room, seat


def verify_seat_token(
    token: str,
    room_code: str,
    seat_index: int,
    secret: str = SEAT_TOKEN_SECRET,
) -> bool:
    return decode_seat_token(token, secret) == (room_code, seat_index)
