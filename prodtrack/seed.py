from __future__ import annotations

from typing import Any, Dict, List

from .models import Project, ProjectStatus

# Board snapshot the dashboard starts from when nothing has been saved yet.
SEED_ROWS: List[Dict[str, Any]] = [
    {"id": 1, "due_date": "2025-06-09", "title": "PRHA#: Disney Blackstone Reformats [OM] - Sending by batch",
     "notes": "8/12-8/14 (10a-4:30p) ET", "master": "Aileen", "is_on_hold": True},
    {"id": 2, "due_date": "2025-08-22", "title": "The Whistler", "pz_qc": "DONE",
     "notes": "8/15 (10a-2p) ET", "editor": "DONE", "master": "Dan", "est_rt": 10, "total_edited": 10.8},
    {"id": 3, "due_date": "2025-08-25", "title": "Hell Bent (Author Read)", "pz_qc": "DONE",
     "editor": "DONE", "master": "Chiquie", "est_rt": 6.75, "total_edited": 6.5},
    {"id": 9, "due_date": "2025-08-20", "title": "Alchemised (CRASH) - Embargoed (sending by batch)",
     "pz_qc": "Laurain", "editor": "Glenn", "master": "Mico", "est_rt": 36, "total_edited": 21.6,
     "remaining_raw": 5},
    {"id": 10, "due_date": "2025-08-26", "title": "The Night That Finds Us All", "pz_qc": "JOmar",
     "notes": "8/18-8/20 (10a-4:30p ET)", "editor": "Alan", "master": "Sae", "est_rt": 7.5,
     "total_edited": 7, "remaining_raw": 1.8},
    {"id": 13, "due_date": "2025-08-27", "title": "Smart Mouth (Author Read)", "pz_qc": "Sarah",
     "editor": "Jazz", "master": "Ralph", "est_rt": 8.5, "total_edited": 9.4},
    {"id": 18, "due_date": "2025-08-27", "title": "The Last Supper (Author Read)", "pz_qc": "Rein",
     "editor": "Normand", "editor_note": "MAY NEED HELP - When somebody is free, please have them help here",
     "master": "Aileen", "master_note": "Somebody check quality and pickups", "est_rt": 8,
     "total_edited": 4.25, "remaining_raw": 6},
    {"id": 61, "due_date": "2025-09-03",
     "title": "ONS: The Defender - DUET(Standard Post - Punch) Multiple Narrator w/ Line-by-Line",
     "pz_qc": "Laurain", "editor": "Macky", "master": "Chiquie", "est_rt": 10.64, "total_edited": 6.8,
     "remaining_raw": 5, "is_on_hold": True},
    {"id": 62, "due_date": "2025-09-08", "title": "HAY HOUSE: Soul Mastery (Post Production)",
     "pz_qc": "Jomar", "editor": "Alan", "master": "Jancel", "est_rt": 9.6, "remaining_raw": 8.6,
     "is_on_hold": True},
    {"id": 63, "due_date": "2025-09-16", "title": "AUDIBLE: BK_ADBL_063306 - Gold Medal Marine - PUNCH",
     "pz_qc": "Jomar", "editor": "Rovic", "master": "Mico", "est_rt": 10.95, "total_edited": 1,
     "remaining_raw": 6, "is_on_hold": True},
    {"id": 64, "due_date": "2025-09-19", "title": "PODIUM: Tyrant - Post Prod (Multiple Narrator)",
     "pz_qc": "Rein", "editor": "Jazz", "master": "Sieg", "remaining_raw": 3.4, "is_on_hold": True},
    {"id": 65, "due_date": "2025-09-02", "title": "AUDIBLE: BK_ADBL_064139 - Only Rogue Actions",
     "editor": "Manjo to start next week instead", "est_rt": 6, "remaining_raw": 3.5},
    {"id": 66, "due_date": "2025-08-27", "title": "ANATOLE STUDIO: Alchemised [French Audiobook] (Edit Only)",
     "notes": "Need another batch for delivery today", "editor": "Jason", "editor_note": "Rovic to edit today",
     "est_rt": 37, "total_edited": 23.8, "remaining_raw": 12.5},
]


def seed_project(row: Dict[str, Any]) -> Project:
    data = dict(row)
    data["original_due_date"] = data.get("due_date")
    if data.get("editor") == "DONE":
        data["status"] = ProjectStatus.DONE.value
        data["editor"] = ""
    else:
        data["status"] = ProjectStatus.ONGOING.value
    return Project.from_dict(data)


def initial_projects() -> List[Project]:
    return [seed_project(row) for row in SEED_ROWS]
