"""
Membership ledger: every read and write of users, UKMs, memberships,
events, registrations and reports.

Consistency rules are enforced by the database (see schema.sql) inside a
single transaction per operation:
- (user_id, ukm_id) and (user_id, event_id) are unique; join and register
  use INSERT ... ON CONFLICT DO NOTHING, so repeating them is harmless.
- Creating a UKM and recording its creator as admin happen in one transaction.
- Deleting a UKM removes its registrations, events, reports and memberships
  in one transaction.

Rows are returned as plain dicts with ISO-8601 timestamps. The password hash
never leaves this module.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import psycopg2
import psycopg2.errors

from backend.auth_service.utils import (
    create_reset_token,
    create_token,
    decode_reset_token,
    hash_password,
    password_fingerprint,
    verify_password,
)
from backend.common.errors import (
    Conflict,
    IncorrectCurrentPassword,
    InvalidCredentials,
    InvalidToken,
    NotFound,
    ValidationError,
)
from backend.common.roles import GlobalRole, OrgRole
from backend.database.db_connection import Database

logger = logging.getLogger(__name__)

# --- CONSTANTS ---
USER_COLUMNS = (
    "user_id, email, username, role, full_name, student_id, faculty, "
    "phone_number, bio, created_at, updated_at"
)
PROFILE_FIELDS = ("full_name", "student_id", "faculty", "phone_number", "bio")
UKM_FIELDS = ("description", "category", "logo_url")
VALID_STATUSES = ["upcoming", "cancelled", "completed"]
NAME_MAX_LENGTH = 200
PASSWORD_MIN_LENGTH = 6

# VARCHAR widths from schema.sql; fields not listed are TEXT.
FIELD_MAX_LENGTHS = {
    "email": 255,
    "username": 100,
    "full_name": 200,
    "student_id": 50,
    "faculty": 200,
    "phone_number": 50,
    "category": 100,
    "location": 255,
    "title": 200,
    "period": 50,
}


def parse_dt(val: Optional[str]) -> Optional[datetime]:
    """
    Safely parse an ISO-8601 string to a datetime object.

    Returns:
        datetime: The parsed datetime, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        if val.endswith("Z"):
            val = val[:-1] + "+00:00"
        return datetime.fromisoformat(val)
    except (ValueError, TypeError):
        return None


def serialize(row: Any) -> Optional[Dict[str, Any]]:
    """Convert a DB row to a JSON-ready dict, dropping the password hash."""
    if row is None:
        return None
    data = dict(row)
    data.pop("password_hash", None)
    for key, value in data.items():
        if isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
    return data


def serialize_all(rows: Iterable[Any]) -> List[Dict[str, Any]]:
    return [serialize(row) for row in rows]


def _clean_text(value: Any, field: str) -> Optional[str]:
    """
    Validate an optional free-text field.

    Blank strings become None. Anything that is not a string, or that is
    longer than its column allows, is rejected.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if not value:
        return None
    limit = FIELD_MAX_LENGTHS.get(field)
    if limit and len(value) > limit:
        raise ValidationError(f"{field} must be {limit} characters or less")
    return value


def _clean_email(email: Any) -> str:
    if not email or not isinstance(email, str):
        raise ValidationError("email and password required")
    email = email.strip().lower()
    local, _, domain = email.partition("@")
    if not local or not domain or " " in email:
        raise ValidationError("email must be a valid email address")
    if len(email) > FIELD_MAX_LENGTHS["email"]:
        raise ValidationError(f"email must be {FIELD_MAX_LENGTHS['email']} characters or less")
    return email


def _lookup_key(value: Any, field: str) -> str:
    """Normalise a login identifier; non-strings never match an account."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def _missing_reference(err: psycopg2.errors.ForeignKeyViolation, default: str) -> NotFound:
    """
    NotFound for a failed foreign key, naming the row that is gone.

    Constraint names follow PostgreSQL's <table>_<column>_fkey default.
    """
    constraint = getattr(err.diag, "constraint_name", None) or ""
    if constraint.endswith(("_user_id_fkey", "_created_by_fkey")):
        return NotFound("User not found")
    return NotFound(default)


def _check_password(password: Any, field: str = "password") -> str:
    if not password or not isinstance(password, str):
        raise ValidationError(f"{field} required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"{field} must be at least {PASSWORD_MIN_LENGTH} characters")
    return password


def _clean_event_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate event input.

    With partial=False the name is mandatory; with partial=True only the
    supplied keys are checked, but a supplied name still may not be blank.
    """
    fields: Dict[str, Any] = {}

    if "name" in data or not partial:
        name = (data.get("name") or "").strip() if isinstance(data.get("name"), str) else ""
        if not name:
            raise ValidationError("name is required")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f"name must be {NAME_MAX_LENGTH} characters or less")
        fields["name"] = name

    for key in ("description", "location"):
        if key in data:
            fields[key] = _clean_text(data.get(key), key)

    if "event_date" in data:
        raw = data.get("event_date")
        if raw in (None, ""):
            fields["event_date"] = None
        else:
            parsed = parse_dt(raw)
            if not parsed:
                raise ValidationError("Invalid event_date format. Use ISO-8601.")
            fields["event_date"] = parsed

    if "status" in data:
        status = data.get("status")
        if status not in VALID_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(VALID_STATUSES)}")
        fields["status"] = status

    return fields


class Ledger:
    """
    Store-backed operations on the membership model.

    Args:
        db: An opened `Database` pool handle.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # --- helpers ---
    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        """`Database.transaction` with out-of-range values reported as bad input."""
        try:
            with self.db.transaction() as conn:
                yield conn
        except psycopg2.DataError as err:
            logger.warning(f"Rejected value: {err}")
            raise ValidationError("Invalid field value")

    def _query_one(self, sql: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return serialize(cur.fetchone())

    def _query_all(self, sql: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return serialize_all(cur.fetchall())

    # =======================================================
    #                       USERS
    # =======================================================

    def create_user(
        self,
        email: str,
        password: str,
        username: Optional[str] = None,
        role: Optional[str] = None,
        **profile: Any,
    ) -> Dict[str, Any]:
        """
        Create an account.

        Raises:
            ValidationError: Missing email/password or unknown role.
            Conflict: Email or username already taken.
        """
        email = _clean_email(email)
        _check_password(password)
        try:
            global_role = GlobalRole.parse(role)
        except ValueError:
            raise ValidationError("role must be one of: user, admin")

        username = _clean_text(username, "username")
        extra = {k: _clean_text(profile[k], k) for k in PROFILE_FIELDS if k in profile}

        columns = ["email", "username", "password_hash", "role"] + list(extra)
        values = [email, username, hash_password(password), global_role.value] + list(extra.values())

        sql = f"""
            INSERT INTO users ({', '.join(columns)})
            VALUES ({', '.join(['%s'] * len(columns))})
            RETURNING {USER_COLUMNS};
        """

        try:
            user = self._query_one(sql, tuple(values))
        except psycopg2.errors.UniqueViolation:
            raise Conflict("username or email already taken")

        logger.info(f"User {user['user_id']} registered")
        return user

    def authenticate(
        self,
        password: str,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], str]:
        """
        Check credentials by email (or legacy username) and issue a token.

        Raises:
            InvalidCredentials: Unknown identifier or wrong password, without
                saying which.
        """
        if email:
            sql = f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE email = %s;"
            params: Tuple = (_lookup_key(email, "email").lower(),)
        elif username:
            sql = f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE username = %s;"
            params = (_lookup_key(username, "username"),)
        else:
            raise ValidationError("Provide email or username and password")

        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()

        if not row or not verify_password(password, row["password_hash"]):
            raise InvalidCredentials()

        user = serialize(row)
        return user, create_token(user["user_id"], user["role"])

    def get_user(self, user_id: int) -> Dict[str, Any]:
        user = self._query_one(f"SELECT {USER_COLUMNS} FROM users WHERE user_id = %s;", (user_id,))
        if not user:
            raise NotFound("User not found")
        return user

    def list_users(self) -> List[Dict[str, Any]]:
        return self._query_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY user_id ASC;")

    def delete_user(self, user_id: int) -> None:
        """Delete an account together with its memberships and registrations."""
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM ukm_event_participants WHERE user_id = %s;", (user_id,))
                cur.execute("DELETE FROM ukm_members WHERE user_id = %s;", (user_id,))
                cur.execute("DELETE FROM users WHERE user_id = %s RETURNING user_id;", (user_id,))
                if cur.fetchone() is None:
                    raise NotFound("User not found")
        logger.info(f"User {user_id} deleted")

    def update_profile(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        allowed = PROFILE_FIELDS + ("username",)
        fields = {k: _clean_text(v, k) for k, v in data.items() if k in allowed}
        if not fields:
            raise ValidationError("No valid fields provided")

        set_clause = ", ".join(f"{k} = %s" for k in fields)
        set_clause += ", updated_at = CURRENT_TIMESTAMP"
        sql = f"UPDATE users SET {set_clause} WHERE user_id = %s RETURNING {USER_COLUMNS};"

        try:
            user = self._query_one(sql, tuple(fields.values()) + (user_id,))
        except psycopg2.errors.UniqueViolation:
            raise Conflict("username already taken")
        if not user:
            raise NotFound("User not found")
        return user

    def get_profile(self, user_id: int) -> Dict[str, Any]:
        """User row plus the UKMs they belong to and the events they registered for."""
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {USER_COLUMNS} FROM users WHERE user_id = %s;", (user_id,))
                user = serialize(cur.fetchone())
                if not user:
                    raise NotFound("User not found")

                cur.execute(
                    """
                    SELECT m.ukm_id, u.name AS ukm_name, m.role, m.joined_at
                    FROM ukm_members m
                    JOIN ukm u ON u.ukm_id = m.ukm_id
                    WHERE m.user_id = %s
                    ORDER BY m.joined_at ASC, m.member_id ASC;
                    """,
                    (user_id,),
                )
                user["memberships"] = serialize_all(cur.fetchall())

                cur.execute(
                    """
                    SELECT p.participant_id, p.event_id, e.name AS event_name,
                           e.event_date, e.ukm_id, p.registered_at
                    FROM ukm_event_participants p
                    JOIN ukm_events e ON e.event_id = p.event_id
                    WHERE p.user_id = %s
                    ORDER BY p.registered_at ASC, p.participant_id ASC;
                    """,
                    (user_id,),
                )
                user["registrations"] = serialize_all(cur.fetchall())
        return user

    # --- passwords ---
    def change_password(
        self,
        user_id: int,
        new_password: str,
        current_password: Optional[str] = None,
    ) -> None:
        """
        Replace a user's password.

        If current_password is given it must match the stored hash first.

        Raises:
            NotFound: Unknown user.
            IncorrectCurrentPassword: current_password did not match.
        """
        _check_password(new_password, "newPassword")
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT password_hash FROM users WHERE user_id = %s FOR UPDATE;",
                    (user_id,),
                )
                row = cur.fetchone()
                if not row:
                    raise NotFound("User not found")
                if current_password and not verify_password(current_password, row["password_hash"]):
                    raise IncorrectCurrentPassword()
                cur.execute(
                    "UPDATE users SET password_hash = %s, updated_at = CURRENT_TIMESTAMP WHERE user_id = %s;",
                    (hash_password(new_password), user_id),
                )
        logger.info(f"Password changed for user {user_id}")

    def request_password_reset(self, email: str) -> Optional[str]:
        """
        Issue a reset token for the account with this email.

        Returns None for an unknown email; callers must not reveal the difference.
        """
        if not email:
            raise ValidationError("email required")
        email = _lookup_key(email, "email").lower()
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT user_id, password_hash FROM users WHERE email = %s;", (email,))
                row = cur.fetchone()
        if not row:
            return None
        return create_reset_token(row["user_id"], row["password_hash"])

    def reset_password(self, email: str, reset_token: str, new_password: str) -> None:
        """
        Set a new password using a reset token.

        Raises:
            InvalidToken: Token invalid, expired, for another account, or
                already used.
        """
        if not reset_token or not isinstance(reset_token, str):
            raise ValidationError("resetToken required")
        _check_password(new_password, "newPassword")
        email = _lookup_key(email, "email").lower()
        user_id, fingerprint = decode_reset_token(reset_token)

        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT email, password_hash FROM users WHERE user_id = %s FOR UPDATE;",
                    (user_id,),
                )
                row = cur.fetchone()
                if (
                    not row
                    or row["email"] != email
                    or password_fingerprint(row["password_hash"]) != fingerprint
                ):
                    raise InvalidToken("invalid reset token")
                cur.execute(
                    "UPDATE users SET password_hash = %s, updated_at = CURRENT_TIMESTAMP WHERE user_id = %s;",
                    (hash_password(new_password), user_id),
                )
        logger.info(f"Password reset for user {user_id}")

    # =======================================================
    #                    ORGANIZATIONS
    # =======================================================

    def create_organization(
        self, name: str, meta: Dict[str, Any], creator_user_id: int
    ) -> Dict[str, Any]:
        """
        Create a UKM and record its creator as admin member, atomically.

        Raises:
            ValidationError: Blank name.
            Conflict: A UKM with this name already exists.
            NotFound: The creator account no longer exists.
        """
        name = (name or "").strip() if isinstance(name, str) else ""
        if not name:
            raise ValidationError("name is required")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f"name must be {NAME_MAX_LENGTH} characters or less")
        extra = {k: _clean_text(meta.get(k), k) for k in UKM_FIELDS if k in (meta or {})}

        columns = ["name", "created_by"] + list(extra)
        values = [name, creator_user_id] + list(extra.values())

        try:
            with self._transaction() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO ukm ({', '.join(columns)})
                        VALUES ({', '.join(['%s'] * len(columns))})
                        RETURNING *;
                        """,
                        tuple(values),
                    )
                    ukm = serialize(cur.fetchone())
                    cur.execute(
                        """
                        INSERT INTO ukm_members (user_id, ukm_id, role)
                        VALUES (%s, %s, %s)
                        RETURNING *;
                        """,
                        (creator_user_id, ukm["ukm_id"], OrgRole.ADMIN.value),
                    )
                    ukm["membership"] = serialize(cur.fetchone())
        except psycopg2.errors.UniqueViolation:
            raise Conflict("UKM name already exists")
        except psycopg2.errors.ForeignKeyViolation:
            raise NotFound("Creator account not found")

        logger.info(f"UKM {ukm['ukm_id']} created by user {creator_user_id}")
        return ukm

    def list_organizations(self) -> List[Dict[str, Any]]:
        return self._query_all(
            """
            SELECT u.*,
                   (SELECT COUNT(*) FROM ukm_members m WHERE m.ukm_id = u.ukm_id) AS member_count
            FROM ukm u
            ORDER BY u.ukm_id ASC;
            """
        )

    def get_organization(self, ukm_id: int) -> Dict[str, Any]:
        """UKM detail with its members and events."""
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM ukm WHERE ukm_id = %s;", (ukm_id,))
                ukm = serialize(cur.fetchone())
                if not ukm:
                    raise NotFound("UKM not found")

                cur.execute(
                    """
                    SELECT m.user_id, usr.full_name, usr.username,
                           m.role, m.joined_at
                    FROM ukm_members m
                    JOIN users usr ON usr.user_id = m.user_id
                    WHERE m.ukm_id = %s
                    ORDER BY m.joined_at ASC, m.member_id ASC;
                    """,
                    (ukm_id,),
                )
                ukm["members"] = serialize_all(cur.fetchall())

                cur.execute(
                    """
                    SELECT * FROM ukm_events
                    WHERE ukm_id = %s
                    ORDER BY event_date ASC NULLS LAST, event_id ASC;
                    """,
                    (ukm_id,),
                )
                ukm["events"] = serialize_all(cur.fetchall())
        return ukm

    def delete_organization(self, ukm_id: int) -> None:
        """Delete a UKM and everything that hangs off it, in one transaction."""
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT ukm_id FROM ukm WHERE ukm_id = %s FOR UPDATE;", (ukm_id,))
                if cur.fetchone() is None:
                    raise NotFound("UKM not found")
                cur.execute(
                    """
                    DELETE FROM ukm_event_participants
                    WHERE event_id IN (SELECT event_id FROM ukm_events WHERE ukm_id = %s);
                    """,
                    (ukm_id,),
                )
                cur.execute("DELETE FROM ukm_events WHERE ukm_id = %s;", (ukm_id,))
                cur.execute("DELETE FROM ukm_reports WHERE ukm_id = %s;", (ukm_id,))
                cur.execute("DELETE FROM ukm_members WHERE ukm_id = %s;", (ukm_id,))
                cur.execute("DELETE FROM ukm WHERE ukm_id = %s;", (ukm_id,))
        logger.info(f"UKM {ukm_id} deleted")

    # --- membership ---
    def get_membership_role(self, user_id: int, ukm_id: int) -> Optional[OrgRole]:
        row = self._query_one(
            "SELECT role FROM ukm_members WHERE user_id = %s AND ukm_id = %s;",
            (user_id, ukm_id),
        )
        if not row:
            return None
        try:
            return OrgRole(row["role"])
        except ValueError:
            logger.error(f"Unknown membership role {row['role']!r} for user {user_id} in UKM {ukm_id}")
            return None

    def join_organization(self, user_id: int, ukm_id: int) -> Tuple[Dict[str, Any], bool]:
        """
        Add the user to a UKM as member.

        Returns:
            tuple: (membership row, created). Joining again returns the
            existing row with created=False and leaves the role untouched.

        Raises:
            NotFound: Unknown UKM or user.
        """
        insert_sql = """
            INSERT INTO ukm_members (user_id, ukm_id, role)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, ukm_id) DO NOTHING
            RETURNING *;
        """
        select_sql = "SELECT * FROM ukm_members WHERE user_id = %s AND ukm_id = %s;"

        # A concurrent leave can remove the row between the two statements.
        for _ in range(2):
            try:
                with self._transaction() as conn:
                    with conn.cursor() as cur:
                        cur.execute(insert_sql, (user_id, ukm_id, OrgRole.MEMBER.value))
                        row = cur.fetchone()
                        if row is not None:
                            logger.info(f"User {user_id} joined UKM {ukm_id}")
                            return serialize(row), True
                        cur.execute(select_sql, (user_id, ukm_id))
                        row = cur.fetchone()
                        if row is not None:
                            return serialize(row), False
            except psycopg2.errors.ForeignKeyViolation as err:
                raise _missing_reference(err, "UKM not found")
        raise Conflict("Membership changed concurrently, try again")

    def leave_organization(self, user_id: int, ukm_id: int) -> bool:
        """Remove the membership if present. Returns whether a row was removed."""
        row = self._query_one(
            "DELETE FROM ukm_members WHERE user_id = %s AND ukm_id = %s RETURNING member_id;",
            (user_id, ukm_id),
        )
        if row:
            logger.info(f"User {user_id} left UKM {ukm_id}")
        return row is not None

    # =======================================================
    #                        EVENTS
    # =======================================================

    def list_events(self, ukm_id: int) -> List[Dict[str, Any]]:
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT ukm_id FROM ukm WHERE ukm_id = %s;", (ukm_id,))
                if cur.fetchone() is None:
                    raise NotFound("UKM not found")
                cur.execute(
                    """
                    SELECT * FROM ukm_events
                    WHERE ukm_id = %s
                    ORDER BY event_date ASC NULLS LAST, event_id ASC;
                    """,
                    (ukm_id,),
                )
                return serialize_all(cur.fetchall())

    def get_event(self, event_id: int) -> Dict[str, Any]:
        event = self._query_one(
            """
            SELECT e.*, u.name AS ukm_name,
                   (SELECT COUNT(*) FROM ukm_event_participants p
                    WHERE p.event_id = e.event_id) AS participant_count
            FROM ukm_events e
            LEFT JOIN ukm u ON u.ukm_id = e.ukm_id
            WHERE e.event_id = %s;
            """,
            (event_id,),
        )
        if not event:
            raise NotFound("Event not found")
        return event

    def get_event_ukm_id(self, event_id: int) -> int:
        """UKM that owns the event; used to scope authorization."""
        row = self._query_one("SELECT ukm_id FROM ukm_events WHERE event_id = %s;", (event_id,))
        if not row:
            raise NotFound("Event not found")
        return row["ukm_id"]

    def create_event(
        self, ukm_id: int, data: Dict[str, Any], created_by: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Missing name or malformed fields.
            NotFound: Unknown UKM.
        """
        fields = _clean_event_fields(data or {})
        columns = ["ukm_id", "created_by"] + list(fields)
        values = [ukm_id, created_by] + list(fields.values())
        sql = f"""
            INSERT INTO ukm_events ({', '.join(columns)})
            VALUES ({', '.join(['%s'] * len(columns))})
            RETURNING *;
        """
        try:
            event = self._query_one(sql, tuple(values))
        except psycopg2.errors.ForeignKeyViolation as err:
            raise _missing_reference(err, "UKM not found")
        logger.info(f"Event {event['event_id']} created in UKM {ukm_id}")
        return event

    def update_event(self, event_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = _clean_event_fields(data or {}, partial=True)
        if not fields:
            raise ValidationError("No valid fields to update")

        set_clause = ", ".join(f"{k} = %s" for k in fields)
        set_clause += ", updated_at = CURRENT_TIMESTAMP"
        sql = f"UPDATE ukm_events SET {set_clause} WHERE event_id = %s RETURNING *;"

        event = self._query_one(sql, tuple(fields.values()) + (event_id,))
        if not event:
            raise NotFound("Event not found")
        return event

    def delete_event(self, event_id: int) -> None:
        with self._transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM ukm_event_participants WHERE event_id = %s;", (event_id,))
                cur.execute("DELETE FROM ukm_events WHERE event_id = %s RETURNING event_id;", (event_id,))
                if cur.fetchone() is None:
                    raise NotFound("Event not found")
        logger.info(f"Event {event_id} deleted")

    # --- registration ---
    def register_for_event(self, user_id: int, event_id: int) -> Tuple[Dict[str, Any], bool]:
        """
        Register the user for an event.

        Returns:
            tuple: (registration row, created). A repeated registration
            returns the existing row with created=False.

        Raises:
            NotFound: Unknown event or user.
        """
        insert_sql = """
            INSERT INTO ukm_event_participants (user_id, event_id)
            VALUES (%s, %s)
            ON CONFLICT (user_id, event_id) DO NOTHING
            RETURNING *;
        """
        select_sql = "SELECT * FROM ukm_event_participants WHERE user_id = %s AND event_id = %s;"

        for _ in range(2):
            try:
                with self._transaction() as conn:
                    with conn.cursor() as cur:
                        cur.execute(insert_sql, (user_id, event_id))
                        row = cur.fetchone()
                        if row is not None:
                            logger.info(f"User {user_id} registered for event {event_id}")
                            return serialize(row), True
                        cur.execute(select_sql, (user_id, event_id))
                        row = cur.fetchone()
                        if row is not None:
                            return serialize(row), False
            except psycopg2.errors.ForeignKeyViolation as err:
                raise _missing_reference(err, "Event not found")
        raise Conflict("Registration changed concurrently, try again")

    def unregister_from_event(self, user_id: int, event_id: int) -> None:
        """
        Raises:
            NotFound: The user was not registered for this event.
        """
        row = self._query_one(
            """
            DELETE FROM ukm_event_participants
            WHERE user_id = %s AND event_id = %s
            RETURNING participant_id;
            """,
            (user_id, event_id),
        )
        if not row:
            raise NotFound("Not registered to event")
        logger.info(f"User {user_id} unregistered from event {event_id}")

    def list_participants(self, event_id: int) -> List[Dict[str, Any]]:
        """Registrants of an event, earliest registration first."""
        return self._query_all(
            """
            SELECT p.participant_id, p.registered_at,
                   u.user_id, u.username, u.email, u.full_name,
                   u.student_id, u.faculty
            FROM ukm_event_participants p
            JOIN users u ON u.user_id = p.user_id
            WHERE p.event_id = %s
            ORDER BY p.registered_at ASC, p.participant_id ASC;
            """,
            (event_id,),
        )

    # =======================================================
    #                       REPORTS
    # =======================================================

    def create_report(
        self, ukm_id: int, data: Dict[str, Any], created_by: Optional[int] = None
    ) -> Dict[str, Any]:
        title = _clean_text(data.get("title"), "title")
        if not title:
            raise ValidationError("title is required")
        content = _clean_text(data.get("content"), "content")
        period = _clean_text(data.get("period"), "period")
        try:
            report = self._query_one(
                """
                INSERT INTO ukm_reports (ukm_id, title, content, period, created_by)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *;
                """,
                (ukm_id, title, content, period, created_by),
            )
        except psycopg2.errors.ForeignKeyViolation as err:
            raise _missing_reference(err, "UKM not found")
        logger.info(f"Report {report['report_id']} created for UKM {ukm_id}")
        return report

    def list_reports(self, ukm_id: int) -> List[Dict[str, Any]]:
        return self._query_all(
            """
            SELECT r.*, u.full_name AS author_name
            FROM ukm_reports r
            LEFT JOIN users u ON u.user_id = r.created_by
            WHERE r.ukm_id = %s
            ORDER BY r.created_at DESC, r.report_id DESC;
            """,
            (ukm_id,),
        )
