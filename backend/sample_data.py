"""
Taskboard — Sample Data Generator
Builds a demo workspace (users, projects, modules, Kanban columns and tasks)
that respects the same rules as the API: every project owner holds a
PROJECT_MANAGER membership, columns and tasks carry contiguous order keys
inside their sibling sets, and every reporter/assignee is a project member.

The same seed always yields the same workspace.

Usage:
    taskboard-sample-data --output sample-data.json
    taskboard-sample-data --users 10 --projects 4 --seed 7
    taskboard-sample-data --load          # write straight into DATABASE_URL
"""

import json
import random
import uuid
import asyncio
import argparse
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger("taskboard.sample_data")

DEMO_PASSWORD = "taskboard-demo"

DEFAULT_COLUMNS = [
    {"name": "To Do", "is_done_column": False},
    {"name": "In Progress", "is_done_column": False},
    {"name": "Done", "is_done_column": True},
]

PROJECT_ROLES = ["PROJECT_MANAGER", "DEVELOPER", "STAKEHOLDER"]
PRIORITIES = ["LOW", "MEDIUM", "HIGH", "CRITICAL"]

FIRST_NAMES = ["Alex", "Jordan", "Taylor", "Morgan", "Casey", "Riley", "Quinn", "Avery", "Sage", "River",
               "Kai", "Rowan", "Phoenix", "Skyler", "Dakota", "Reese", "Finley", "Harper", "Emery", "Blake"]
LAST_NAMES = ["Chen", "Patel", "Kim", "Santos", "Okafor", "Tanaka", "Silva", "Nguyen", "Dubois", "Rossi"]
DOMAINS = ["example.com", "taskboard.dev"]

PROJECT_NAMES = ["Website Relaunch", "Mobile App", "Data Platform", "Billing Revamp", "Internal Tools",
                 "Onboarding Flow", "Search Service", "Design System"]
MODULE_NAMES = ["Backlog", "Sprint 1", "Sprint 2", "Release Prep", "Research", "Bug Bash"]
TASK_VERBS = ["Write", "Review", "Design", "Implement", "Test", "Document", "Refactor", "Deploy"]
TASK_OBJECTS = ["login form", "API client", "database schema", "release notes", "search page",
                "payment flow", "error pages", "CI pipeline", "settings screen", "onboarding email"]


class SampleDataGenerator:
    """Generates a consistent demo workspace."""

    def __init__(self, seed: int = 42, now: Optional[datetime] = None):
        self.seed = seed
        self.rng = random.Random(seed)
        self.now = now or datetime.now(timezone.utc)

    def _uuid(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def _past(self, max_days: int = 120) -> str:
        delta = timedelta(days=self.rng.randint(0, max_days), hours=self.rng.randint(0, 23))
        return (self.now - delta).isoformat()

    # ── Generators ──────────────────────────────────────────

    def generate_user(self, index: int) -> dict:
        first = self.rng.choice(FIRST_NAMES)
        last = self.rng.choice(LAST_NAMES)
        return {
            "id": self._uuid(),
            "email": f"{first.lower()}.{last.lower()}{index}@{self.rng.choice(DOMAINS)}",
            "full_name": f"{first} {last}",
            "password": DEMO_PASSWORD,
            "system_role": "ADMIN" if index == 0 else "USER",
            "created_at": self._past(365),
        }

    def generate_project(self, index: int, owner: dict, users: List[dict]) -> Dict[str, Any]:
        """A project plus its members, modules, columns and tasks"""
        name = PROJECT_NAMES[index % len(PROJECT_NAMES)]
        if index >= len(PROJECT_NAMES):
            name = f"{name} {index // len(PROJECT_NAMES) + 1}"
        project = {
            "id": self._uuid(),
            "name": name,
            "description": f"Demo project owned by {owner['full_name']}",
            "owner_id": owner["id"],
            "created_at": self._past(90),
        }

        others = [u for u in users if u["id"] != owner["id"]]
        invited = self.rng.sample(others, k=min(len(others), self.rng.randint(1, 4)))
        members = [{
            "id": self._uuid(),
            "project_id": project["id"],
            "user_id": owner["id"],
            "project_role": "PROJECT_MANAGER",
        }]
        for user in invited:
            members.append({
                "id": self._uuid(),
                "project_id": project["id"],
                "user_id": user["id"],
                "project_role": self.rng.choice(PROJECT_ROLES[1:]),
            })

        return {"project": project, "members": members}

    def generate_module(self, project: dict, name: str) -> dict:
        start = self.now.date() - timedelta(days=self.rng.randint(0, 30))
        return {
            "id": self._uuid(),
            "project_id": project["id"],
            "name": name,
            "description": f"{name} for {project['name']}",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=self.rng.choice([7, 14, 21]))).isoformat(),
        }

    def generate_columns(self, module: dict) -> List[dict]:
        return [
            {
                "id": self._uuid(),
                "module_id": module["id"],
                "name": col["name"],
                "order_index": position,
                "is_done_column": col["is_done_column"],
            }
            for position, col in enumerate(DEFAULT_COLUMNS)
        ]

    def generate_tasks(self, module: dict, columns: List[dict], members: List[dict], count: int) -> List[dict]:
        next_index = {col["id"]: 0 for col in columns}
        tasks = []
        for _ in range(count):
            column = self.rng.choice(columns)
            reporter = self.rng.choice(members)
            assignee = self.rng.choice(members) if self.rng.random() > 0.3 else None
            due = self.now.date() + timedelta(days=self.rng.randint(1, 30)) if self.rng.random() > 0.5 else None
            tasks.append({
                "id": self._uuid(),
                "module_id": module["id"],
                "column_id": column["id"],
                "reporter_id": reporter["id"],
                "assignee_id": assignee["user_id"] if assignee else None,
                "title": f"{self.rng.choice(TASK_VERBS)} {self.rng.choice(TASK_OBJECTS)}",
                "description": None,
                "priority": self.rng.choice(PRIORITIES),
                "task_order_index": next_index[column["id"]],
                "due_date": due.isoformat() if due else None,
            })
            next_index[column["id"]] += 1
        return tasks

    # ── Main Generator ──────────────────────────────────────

    def generate_all(self, counts: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        c = counts or {"users": 8, "projects": 3, "modules_per_project": 2, "tasks_per_module": 8}
        if c["users"] < 1:
            raise ValueError("At least one user is required")

        users = [self.generate_user(i) for i in range(c["users"])]
        projects, members, modules, columns, tasks = [], [], [], [], []

        for index in range(c["projects"]):
            bundle = self.generate_project(index, self.rng.choice(users), users)
            projects.append(bundle["project"])
            members.extend(bundle["members"])

            for name in MODULE_NAMES[:c["modules_per_project"]]:
                module = self.generate_module(bundle["project"], name)
                module_columns = self.generate_columns(module)
                modules.append(module)
                columns.extend(module_columns)
                tasks.extend(self.generate_tasks(module, module_columns, bundle["members"], c["tasks_per_module"]))

        return {
            "generated_at": self.now.isoformat(),
            "generator": "Taskboard Sample Data Generator v1.0",
            "seed": self.seed,
            "counts": {
                "users": len(users),
                "projects": len(projects),
                "project_members": len(members),
                "modules": len(modules),
                "kanban_columns": len(columns),
                "tasks": len(tasks),
            },
            "data": {
                "users": users,
                "projects": projects,
                "project_members": members,
                "modules": modules,
                "kanban_columns": columns,
                "tasks": tasks,
            },
        }


# ── Loader ──────────────────────────────────────────────────

def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def build_records(data: Dict[str, Any], password_hash: str) -> List[Any]:
    """Turn generated data into validated model instances, parents first"""
    from models import User, Project, ProjectMember, Module, KanbanColumn, Task

    d = data["data"]
    records: List[Any] = []
    records += [
        User(id=u["id"], email=u["email"], full_name=u["full_name"],
             password_hash=password_hash, system_role=u["system_role"])
        for u in d["users"]
    ]
    records += [
        Project(id=p["id"], name=p["name"], description=p["description"], owner_id=p["owner_id"])
        for p in d["projects"]
    ]
    records += [ProjectMember(**m) for m in d["project_members"]]
    records += [
        Module(id=m["id"], project_id=m["project_id"], name=m["name"], description=m["description"],
               start_date=_date(m["start_date"]), end_date=_date(m["end_date"]))
        for m in d["modules"]
    ]
    records += [KanbanColumn(**col) for col in d["kanban_columns"]]
    records += [
        Task(**{**t, "due_date": _date(t["due_date"])})
        for t in d["tasks"]
    ]
    return records


async def load_into_database(data: Dict[str, Any]) -> int:
    """Create tables if needed and insert the workspace in one transaction"""
    from auth import AuthService
    from database import init_db, get_db_context

    await init_db()
    records = build_records(data, AuthService.hash_password(DEMO_PASSWORD))
    async with get_db_context() as db:
        for record in records:
            db.add(record)
            # Parents must exist before children under enforced foreign keys
            await db.flush()
    logger.info(f"Loaded {len(records)} sample records")
    return len(records)


# ── CLI ─────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Taskboard Sample Data Generator")
    parser.add_argument("--users", type=int, default=8, help="Number of users")
    parser.add_argument("--projects", type=int, default=3, help="Number of projects")
    parser.add_argument("--modules", type=int, default=2, help="Modules per project")
    parser.add_argument("--tasks", type=int, default=8, help="Tasks per module")
    parser.add_argument("--output", type=str, default="sample-data.json", help="Output file")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--load", action="store_true", help="Insert into DATABASE_URL instead of writing JSON")
    args = parser.parse_args(argv)

    generator = SampleDataGenerator(seed=args.seed)
    data = generator.generate_all({
        "users": args.users,
        "projects": args.projects,
        "modules_per_project": min(args.modules, len(MODULE_NAMES)),
        "tasks_per_module": args.tasks,
    })

    counts = data["counts"]
    if args.load:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s %(message)s")
        asyncio.run(load_into_database(data))
        print(f"✅ Sample data loaded ({sum(counts.values())} records, password '{DEMO_PASSWORD}')")
    else:
        with open(args.output, "w") as f:
            json.dump(data, f, indent=2, default=str)
        print(f"✅ Sample data generated: {args.output}")

    for name, count in counts.items():
        print(f"   {name}: {count}")
    return data


if __name__ == "__main__":
    main()
