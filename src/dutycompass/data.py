import json
import logging
import os
import sqlite3
from typing import Dict, List

from dutycompass.models import (
    Absence, DailyPresenceSnapshot, HourlyBlockage, Person, PersonalRotation, TeamRotation,
)


def _iso(value):
    return value.isoformat() if hasattr(value, 'isoformat') else value


class Database:
    """
    SQLite store for the records the engine reads. Dates come back as the ISO
    strings they were stored as; the engine coerces them (and skips records it
    cannot parse).
    """

    def __init__(self, db_path: str = None):
        try:
            self.db_path = db_path or os.path.join(os.path.expanduser("~"), ".dutycompass", "dutycompass.db")
            if self.db_path != ':memory:':
                os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row
            self._ensure_tables()
        except Exception as e:
            logging.error(f"Database connection error: {e}")
            raise

    def _ensure_tables(self):
        cur = self.conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS people (
          id TEXT PRIMARY KEY,
          team_id TEXT,
          is_active INTEGER NOT NULL DEFAULT 1,
          rotation_days_on INTEGER,
          rotation_days_off INTEGER,
          rotation_start TEXT,
          rotation_active INTEGER NOT NULL DEFAULT 0
        )""")
        cur.execute("""
        CREATE TABLE IF NOT EXISTS team_rotations (
          team_id TEXT PRIMARY KEY,
          cycle_start TEXT NOT NULL,
          pattern TEXT NOT NULL,
          end_date TEXT,
          arrival_time TEXT,
          departure_time TEXT
        )""")
        cur.execute("""
        CREATE TABLE IF NOT EXISTS absences (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          person_id TEXT NOT NULL,
          start_date TEXT NOT NULL,
          end_date TEXT NOT NULL,
          reason TEXT,
          status TEXT NOT NULL,
          created_at TEXT
        )""")
        cur.execute("""
        CREATE TABLE IF NOT EXISTS hourly_blockages (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          person_id TEXT NOT NULL,
          date TEXT NOT NULL,
          start_time TEXT NOT NULL,
          end_time TEXT NOT NULL,
          reason TEXT
        )""")
        # one manual entry per person and day
        cur.execute("""
        CREATE TABLE IF NOT EXISTS daily_presence (
          person_id TEXT NOT NULL,
          date TEXT NOT NULL,
          status TEXT NOT NULL,
          start_time TEXT,
          end_time TEXT,
          PRIMARY KEY (person_id, date)
        )""")
        self.conn.commit()

    # People
    def save_person(self, person: Person):
        rot = person.personal_rotation
        self.conn.execute(
            "REPLACE INTO people (id, team_id, is_active, rotation_days_on, rotation_days_off,"
            " rotation_start, rotation_active) VALUES (?,?,?,?,?,?,?)",
            (
                person.id, person.team_id, int(person.is_active),
                rot.days_on if rot else None,
                rot.days_off if rot else None,
                _iso(rot.start_date) if rot else None,
                int(rot.is_active) if rot else 0,
            ),
        )
        self.conn.commit()

    def load_people(self) -> List[Person]:
        out = []
        for row in self.conn.execute("SELECT * FROM people ORDER BY id"):
            rot = None
            if row['rotation_start']:
                rot = PersonalRotation(
                    days_on=row['rotation_days_on'],
                    days_off=row['rotation_days_off'],
                    start_date=row['rotation_start'],
                    is_active=bool(row['rotation_active']),
                )
            out.append(Person(row['id'], row['team_id'], bool(row['is_active']), rot))
        return out

    def get_person(self, person_id: str):
        for p in self.load_people():
            if p.id == person_id:
                return p
        return None

    # Rotations
    def save_rotation(self, rot: TeamRotation):
        self.conn.execute(
            "REPLACE INTO team_rotations (team_id, cycle_start, pattern, end_date, arrival_time, departure_time)"
            " VALUES (?,?,?,?,?,?)",
            (rot.team_id, _iso(rot.cycle_start), ','.join(rot.pattern),
             _iso(rot.end_date) if rot.end_date else None, rot.arrival_time, rot.departure_time),
        )
        self.conn.commit()

    def load_rotations(self) -> List[TeamRotation]:
        out = []
        for row in self.conn.execute("SELECT * FROM team_rotations ORDER BY team_id"):
            pattern = [x for x in row['pattern'].split(',') if x]
            out.append(TeamRotation(
                team_id=row['team_id'],
                cycle_start=row['cycle_start'],
                pattern=pattern,
                end_date=row['end_date'],
                arrival_time=row['arrival_time'],
                departure_time=row['departure_time'],
            ))
        return out

    # Absences
    def save_absence(self, a: Absence) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO absences (person_id, start_date, end_date, reason, status, created_at)"
            " VALUES (?,?,?,?,?,?)",
            (a.person_id, _iso(a.start_date), _iso(a.end_date), a.reason, a.status,
             _iso(a.created_at) if a.created_at else None),
        )
        self.conn.commit()
        return cur.lastrowid

    def load_absences(self, person_id: str = None) -> List[Absence]:
        query = "SELECT * FROM absences"
        params = ()
        if person_id is not None:
            query += " WHERE person_id=?"
            params = (person_id,)
        return [
            Absence(
                person_id=row['person_id'],
                start_date=row['start_date'],
                end_date=row['end_date'],
                reason=row['reason'] or '',
                status=row['status'],
                created_at=row['created_at'],
                id=str(row['id']),
            )
            for row in self.conn.execute(query + " ORDER BY id", params)
        ]

    def delete_absence(self, absence_id):
        self.conn.execute("DELETE FROM absences WHERE id=?", (int(absence_id),))
        self.conn.commit()

    # Hourly blockages
    def save_blockage(self, b: HourlyBlockage) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO hourly_blockages (person_id, date, start_time, end_time, reason) VALUES (?,?,?,?,?)",
            (b.person_id, _iso(b.date), b.start_time, b.end_time, b.reason),
        )
        self.conn.commit()
        return cur.lastrowid

    def load_blockages(self) -> List[HourlyBlockage]:
        return [
            HourlyBlockage(row['person_id'], row['date'], row['start_time'], row['end_time'],
                           row['reason'] or '', str(row['id']))
            for row in self.conn.execute("SELECT * FROM hourly_blockages ORDER BY id")
        ]

    # Daily presence
    def save_snapshot(self, snap: DailyPresenceSnapshot):
        status = snap.status if isinstance(snap.status, str) else json.dumps(dict(snap.status), ensure_ascii=False)
        self.conn.execute(
            "REPLACE INTO daily_presence (person_id, date, status, start_time, end_time) VALUES (?,?,?,?,?)",
            (snap.person_id, _iso(snap.date), status, snap.start_time, snap.end_time),
        )
        self.conn.commit()

    def load_snapshots(self) -> List[DailyPresenceSnapshot]:
        out = []
        for row in self.conn.execute("SELECT * FROM daily_presence ORDER BY date, person_id"):
            status = row['status']
            if status.startswith('{'):
                try:
                    status = json.loads(status)
                except ValueError:
                    pass  # keep the raw text as label
            out.append(DailyPresenceSnapshot(row['person_id'], row['date'], status,
                                             row['start_time'], row['end_time']))
        return out

    def load_all(self) -> Dict[str, list]:
        """Everything the resolver needs, in one go."""
        return {
            'rotations': self.load_rotations(),
            'absences': self.load_absences(),
            'blockages': self.load_blockages(),
            'snapshots': self.load_snapshots(),
        }

    def close(self):
        """Schließe die Datenbankverbindung sauber"""
        if self.conn:
            self.conn.close()
            self.conn = None
