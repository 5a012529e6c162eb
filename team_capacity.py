"""
Team Capacity Planner
Keeps projects, team members and tasks in an Excel workbook, lays them out on a
Sunday-anchored week grid, and outputs per-person capacity and task Gantt
charts as PNGs.

Features:
  - 16-week timeline that pages forward/backward one week at a time
  - Per-week overlap percentages with start/end caps for Gantt segments
  - Per-person capacity aggregation with normal/high/over tiers
  - Owner-only project changes; progress updates by the task assignee
  - Membership by email, with invitations for people not signed up yet
  - Team view across a lead's projects, with add/remove everywhere at once
  - Excel template with dropdowns and conditional formatting
"""

import argparse
import io
import math
import os
import re
import sys
import uuid
import zipfile
from datetime import date, datetime, timedelta, timezone

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from matplotlib.patches import FancyBboxPatch
import numpy as np
import pandas as pd
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.formatting.rule import CellIsRule


# ── Constants ────────────────────────────────────────────────────────────────

_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_INPUT = os.path.join(_DIR, "team_data.xlsx")
DEFAULT_OUTDIR = os.path.join(_DIR, "output")

DEFAULT_WEEKS = 16
DEFAULT_DISPLAY_WEEKS = 12
WEEK_DAYS = 7

# Share of a person's week one task takes when it covers the whole week.
DEFAULT_TASK_LOAD = 50

HIGH_THRESHOLD = 80
OVER_THRESHOLD = 100
CAPACITY_CEILING = 100

TIER_NORMAL = "normal"
TIER_HIGH = "high"
TIER_OVER = "over"
TIER_COLORS = {
    TIER_NORMAL: "#43A047",
    TIER_HIGH: "#FF8F00",
    TIER_OVER: "#E53935",
}

# Both status vocabularies are accepted: not_started/in_progress/completed,
# and the later pending/blocked additions.
TASK_STATUS_VALUES = ["not_started", "pending", "in_progress", "completed", "blocked"]
STATUS_LABELS = {
    "not_started": "Not Started",
    "pending": "Pending",
    "in_progress": "In Progress",
    "completed": "Completed",
    "blocked": "Blocked",
}
STATUS_COLORS = {
    "not_started": "#90A4AE",
    "pending": "#B0BEC5",
    "in_progress": "#1E88E5",
    "completed": "#43A047",
    "blocked": "#E53935",
}

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Workbook layout: one sheet per collection, (header, field) per column.
COLLECTIONS = {
    "profiles": {
        "sheet": "Profiles",
        "columns": [("ID", "id"), ("Email", "email"), ("Full Name", "full_name"),
                    ("Created At", "created_at")],
        "required": {"ID", "Email"},
    },
    "projects": {
        "sheet": "Projects",
        "columns": [("ID", "id"), ("Name", "name"), ("Description", "description"),
                    ("Admin ID", "admin_id"), ("Start Date", "start_date"),
                    ("End Date", "end_date"), ("Created At", "created_at")],
        "required": {"ID", "Name", "Admin ID", "Start Date", "End Date"},
    },
    "project_members": {
        "sheet": "Project Members",
        "columns": [("ID", "id"), ("Project ID", "project_id"), ("User ID", "user_id"),
                    ("Created At", "created_at")],
        "required": {"ID", "Project ID", "User ID"},
    },
    "tasks": {
        "sheet": "Tasks",
        "columns": [("ID", "id"), ("Project ID", "project_id"), ("Name", "name"),
                    ("Description", "description"), ("Assigned To", "assigned_to"),
                    ("Start Date", "start_date"), ("End Date", "end_date"),
                    ("Progress", "progress"), ("Status", "status"),
                    ("Created At", "created_at")],
        "required": {"ID", "Project ID", "Name", "Start Date", "End Date"},
    },
    "invited_users": {
        "sheet": "Invited Users",
        "columns": [("ID", "id"), ("Email", "email"), ("Invited By", "invited_by"),
                    ("Created At", "created_at")],
        "required": {"ID", "Email"},
        "optional": True,
    },
}

STYLE = {
    "font_family": "DejaVu Sans",
    "title_size": 18,
    "subtitle_size": 13,
    "label_size": 9.5,
    "tick_size": 8.5,
    "small_size": 7.5,
    "bg_color": "#FAFAFA",
    "panel_bg": "#FFFFFF",
    "text_primary": "#1A1A2E",
    "text_secondary": "#555555",
    "text_muted": "#999999",
    "grid_color": "#E0E0E0",
    "today_color": "#D32F2F",
    "available_color": "#B0BEC5",
    "row_shade_even": "#F5F5F5",
    "row_shade_odd": "#FFFFFF",
    "bar_height": 0.6,
    "cell_width": 0.9,
    "dpi": 180,
    "fig_width": 20,
}


# ── Style Helpers ────────────────────────────────────────────────────────────

def apply_style():
    """Configure matplotlib rcParams for consistent styling."""
    plt.rcParams.update({
        "font.family": STYLE["font_family"],
        "font.size": STYLE["label_size"],
        "axes.facecolor": STYLE["panel_bg"],
        "figure.facecolor": STYLE["bg_color"],
        "axes.edgecolor": STYLE["grid_color"],
        "axes.linewidth": 0.8,
        "axes.grid": False,
        "grid.color": STYLE["grid_color"],
        "grid.linewidth": 0.5,
        "grid.alpha": 0.3,
        "xtick.color": STYLE["text_secondary"],
        "ytick.color": STYLE["text_secondary"],
        "text.color": STYLE["text_primary"],
    })


def style_axes(ax, title="", ylabel="", show_grid_x=False, show_grid_y=False):
    """Apply consistent axis styling to any subplot."""
    if title:
        ax.set_title(title, fontsize=STYLE["subtitle_size"], fontweight="bold",
                     color=STYLE["text_primary"], pad=12, loc="left")
    if ylabel:
        ax.set_ylabel(ylabel, fontsize=STYLE["label_size"], color=STYLE["text_secondary"])
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.spines["left"].set_linewidth(0.6)
    ax.spines["bottom"].set_linewidth(0.6)
    if show_grid_x:
        ax.grid(axis="x", alpha=0.15, linewidth=0.5, color=STYLE["grid_color"])
    if show_grid_y:
        ax.grid(axis="y", alpha=0.15, linewidth=0.5, color=STYLE["grid_color"])
    ax.set_axisbelow(True)


def add_header_footer(fig, title, subtitle="", data_mtime=None):
    """Add a title block and generation timestamp footer."""
    fig.suptitle(title, fontsize=STYLE["title_size"], fontweight="bold",
                 color=STYLE["text_primary"], y=0.98, x=0.04, ha="left")
    if subtitle:
        fig.text(0.04, 0.948, subtitle, fontsize=STYLE["small_size"] + 1,
                 color=STYLE["text_muted"], ha="left")
    fig.text(0.98, 0.008, f"Generated {datetime.now().strftime('%d %b %Y %H:%M')}",
             ha="right", fontsize=STYLE["small_size"], color=STYLE["text_muted"])
    footer_left = "Team Capacity Planner"
    mtime_str = data_mtime or STYLE.get("_data_mtime")
    if mtime_str:
        footer_left += f"  ·  Data updated {mtime_str}"
    fig.text(0.04, 0.008, footer_left,
             ha="left", fontsize=STYLE["small_size"], color=STYLE["text_muted"])


def draw_today_marker(ax, weeks, y_top):
    """Highlight the week column containing today, if it is on the grid."""
    today = norm_date(datetime.now())
    for i, week in enumerate(weeks):
        if week <= today <= get_week_end(week):
            ax.axvspan(i - 0.5, i + 0.5, color=STYLE["today_color"], alpha=0.05, zorder=0)
            ax.text(i, y_top, "Today", fontsize=STYLE["small_size"] + 0.5,
                    color=STYLE["today_color"], fontweight="bold", va="bottom",
                    ha="center", style="italic")
            return


def draw_rounded_bar(ax, x, y, width, height, color, alpha=1.0,
                     edgecolor=None, linewidth=1.2, hatch="", zorder=3,
                     linestyle="-"):
    """Draw a horizontal bar with rounded corners using FancyBboxPatch."""
    if width <= 0:
        return None
    rounding = min(0.12, height * 0.3, width * 0.25)
    fancy = FancyBboxPatch(
        (x, y - height / 2), width, height,
        boxstyle=f"round,pad=0,rounding_size={rounding}",
        facecolor=color, alpha=alpha,
        edgecolor=edgecolor or color, linewidth=linewidth,
        hatch=hatch, zorder=zorder, linestyle=linestyle,
    )
    ax.add_patch(fancy)
    return fancy


def _save_figure(fig, output_path):
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    fig.savefig(output_path, dpi=STYLE["dpi"], bbox_inches="tight", facecolor=STYLE["bg_color"])
    plt.close(fig)


# ── Date & Value Helpers ─────────────────────────────────────────────────────

def _is_blank(val):
    if val is None or val is pd.NaT:
        return True
    return isinstance(val, float) and math.isnan(val)


def norm_date(d):
    """Normalise to midnight datetime for safe comparisons."""
    if isinstance(d, pd.Timestamp):
        d = d.to_pydatetime()
    if not isinstance(d, date):
        raise TypeError(f"norm_date expected a date, got {type(d).__name__}: {d!r}")
    return datetime(d.year, d.month, d.day)


def clean_str(val):
    """Return stripped string or empty string for NaN/None."""
    if _is_blank(val):
        return ""
    return str(val).strip()


def _clean_id(val):
    """Record ids are strings; Excel may hand back whole numbers as floats."""
    if isinstance(val, float) and not math.isnan(val) and val.is_integer():
        val = int(val)
    return clean_str(val)


class _TeeWriter:
    """Write to two streams simultaneously (for summary.txt capture)."""
    def __init__(self, a, b):
        self.a, self.b = a, b
    def write(self, data):
        self.a.write(data)
        self.b.write(data)
    def flush(self):
        self.a.flush()
        self.b.flush()


def parse_date(val, context=""):
    """Parse a calendar date from a cell or string to a midnight datetime."""
    ctx = f" ({context})" if context else ""
    if _is_blank(val):
        raise ValueError(f"Date is blank{ctx}")
    if isinstance(val, date):
        return norm_date(val)
    if isinstance(val, str):
        val = val.strip()
        if not val:
            raise ValueError(f"Date is blank{ctx}")
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y"):
            try:
                return norm_date(datetime.strptime(val, fmt))
            except ValueError:
                pass
        try:
            return norm_date(datetime.fromisoformat(val))
        except ValueError:
            pass
        raise ValueError(f"Cannot parse date{ctx}: {val!r}. Expected YYYY-MM-DD or DD/MM/YYYY")
    raise ValueError(f"Cannot parse date{ctx}: {val!r}")


def parse_timestamp(val):
    """Parse a created-at timestamp. Blank gives None; aware values become naive UTC."""
    if _is_blank(val):
        return None
    if isinstance(val, pd.Timestamp):
        val = val.to_pydatetime()
    if isinstance(val, datetime):
        stamp = val
    elif isinstance(val, date):
        stamp = datetime(val.year, val.month, val.day)
    elif isinstance(val, str):
        text = val.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            stamp = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Cannot parse timestamp: {val!r}")
    else:
        raise ValueError(f"Cannot parse timestamp: {val!r}")
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone(timezone.utc).replace(tzinfo=None)
    return stamp


def parse_progress(val):
    """Progress as an int in 0..100; blank means 0. Out-of-range values are clamped."""
    if _is_blank(val) or clean_str(val) == "":
        return 0
    try:
        progress = int(round(float(val)))
    except (ValueError, TypeError):
        raise ValueError(f"Progress {val!r} is not a number")
    return max(0, min(100, progress))


def normalize_status(val):
    """Canonical status key: 'In Progress', 'in-progress' and 'in_progress' are the same."""
    status = clean_str(val).lower().replace("-", "_").replace(" ", "_")
    return status or "not_started"


def display_name(person):
    """Full name, falling back to email."""
    if not person:
        return ""
    return person.get("full_name") or person.get("email") or ""


# ── Errors ───────────────────────────────────────────────────────────────────

class ValidationError(ValueError):
    """Input rejected before any change reaches the store."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotPermittedError(Exception):
    """The acting person may not perform this change."""

    def __init__(self, action="perform this action"):
        super().__init__(f"Not permitted to {action}")
        self.action = action


class RecordNotFoundError(LookupError):
    """A referenced project, task, member or person no longer exists."""

    def __init__(self, collection, record_id):
        super().__init__(f"{collection} record {record_id!r} not found")
        self.collection = collection
        self.record_id = record_id


# ── Record Normalization ─────────────────────────────────────────────────────

def _require(value, label):
    if not value:
        raise ValueError(f"{label} is blank")
    return value


def normalize_related(value):
    """Collapse a joined record to a single mapping (or None).

    Joined rows arrive either as a mapping or as a one-element list depending
    on how the relation was declared. Everything past this point sees one dict.
    """
    if _is_blank(value):
        return None
    if isinstance(value, (list, tuple)):
        if not value or value[0] is None:
            return None
        value = value[0]
    if not isinstance(value, dict):
        raise TypeError(f"Related record must be a mapping or a list of mappings, "
                        f"got {type(value).__name__}")
    return dict(value)


def _normalize_project_ref(raw):
    if raw is None:
        return None
    return {"id": _clean_id(raw.get("id")) or None, "name": clean_str(raw.get("name"))}


def _normalize_person_ref(raw):
    if raw is None:
        return None
    return {"full_name": clean_str(raw.get("full_name")) or None,
            "email": clean_str(raw.get("email"))}


def normalize_profile(raw):
    return {
        "id": _require(_clean_id(raw.get("id")), "id"),
        "email": clean_str(raw.get("email")),
        "full_name": clean_str(raw.get("full_name")) or None,
        "created_at": parse_timestamp(raw.get("created_at")),
    }


def normalize_project(raw):
    start = parse_date(raw.get("start_date"), context="start date")
    end = parse_date(raw.get("end_date"), context="end date")
    if end <= start:
        raise ValueError(f"end date {end:%Y-%m-%d} is not after start date {start:%Y-%m-%d}")
    return {
        "id": _require(_clean_id(raw.get("id")), "id"),
        "name": clean_str(raw.get("name")),
        "description": clean_str(raw.get("description")) or None,
        "admin_id": _require(_clean_id(raw.get("admin_id")), "admin_id"),
        "start_date": start,
        "end_date": end,
        "created_at": parse_timestamp(raw.get("created_at")),
    }


def normalize_member(raw):
    """Membership row, with the joined profile (if any) folded into 'profile'."""
    profile = normalize_related(raw.get("profiles", raw.get("profile")))
    profile = normalize_profile(profile) if profile and _clean_id(profile.get("id")) else None
    user_id = _clean_id(raw.get("user_id")) or (profile["id"] if profile else "")
    return {
        "id": _clean_id(raw.get("id")) or None,
        "project_id": _clean_id(raw.get("project_id")) or None,
        "user_id": _require(user_id, "user_id"),
        "created_at": parse_timestamp(raw.get("created_at")),
        "profile": profile,
    }


def normalize_task(raw):
    """Task row in its canonical shape; 'project' and 'assignee' are always present.
    A task may start and end on the same day but never end before it starts."""
    start = parse_date(raw.get("start_date"), context="start date")
    end = parse_date(raw.get("end_date"), context="end date")
    if end < start:
        raise ValueError(f"end date {end:%Y-%m-%d} is before start date {start:%Y-%m-%d}")
    return {
        "id": _require(_clean_id(raw.get("id")), "id"),
        "project_id": _require(_clean_id(raw.get("project_id")), "project_id"),
        "name": clean_str(raw.get("name")),
        "description": clean_str(raw.get("description")) or None,
        "assigned_to": _clean_id(raw.get("assigned_to")) or None,
        "start_date": start,
        "end_date": end,
        "progress": parse_progress(raw.get("progress")),
        "status": normalize_status(raw.get("status")),
        "created_at": parse_timestamp(raw.get("created_at")),
        "project": _normalize_project_ref(normalize_related(raw.get("project"))),
        "assignee": _normalize_person_ref(normalize_related(raw.get("assignee"))),
    }


def normalize_invite(raw):
    return {
        "id": _require(_clean_id(raw.get("id")), "id"),
        "email": _require(clean_str(raw.get("email")).lower(), "email"),
        "invited_by": _clean_id(raw.get("invited_by")) or None,
        "created_at": parse_timestamp(raw.get("created_at")),
    }


NORMALIZERS = {
    "profiles": normalize_profile,
    "projects": normalize_project,
    "project_members": normalize_member,
    "tasks": normalize_task,
    "invited_users": normalize_invite,
}


# ── Record Store ─────────────────────────────────────────────────────────────

def _collection_layout(collection):
    if collection not in COLLECTIONS:
        raise KeyError(f"Unknown collection {collection!r}. "
                       f"Known: {', '.join(COLLECTIONS)}")
    return COLLECTIONS[collection]


def _cell_value(val):
    if _is_blank(val):
        return None
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    return val


def _to_cell(val):
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    if isinstance(val, date) and not isinstance(val, datetime):
        return datetime(val.year, val.month, val.day)
    return val


def load_collection(filepath, collection):
    """Read every record of one collection.

    A missing optional sheet reads as empty; a missing required sheet is
    reported as an error and also reads as empty. Unreadable files raise.
    """
    layout = _collection_layout(collection)
    with pd.ExcelFile(filepath) as xls:
        if layout["sheet"] not in xls.sheet_names:
            # Older workbooks have no Invited Users sheet
            if not layout.get("optional"):
                print(f"  ERROR: Workbook has no '{layout['sheet']}' sheet. "
                      f"Found: {', '.join(xls.sheet_names)}")
            return []
        df = pd.read_excel(xls, sheet_name=layout["sheet"], dtype=object)
    if df.empty:
        return []
    df.columns = [str(c).strip() for c in df.columns]
    missing = layout["required"] - set(df.columns)
    if missing:
        print(f"  ERROR: {layout['sheet']} sheet is missing column(s): {', '.join(sorted(missing))}. "
              f"Found: {', '.join(df.columns)}")
        return []

    normalizer = NORMALIZERS[collection]
    records = []
    for idx, row in df.iterrows():
        row_num = idx + 2
        raw = {field: _cell_value(row.get(header)) for header, field in layout["columns"]}
        if not _clean_id(raw["id"]):
            continue  # skip blank rows
        try:
            records.append(normalizer(raw))
        except (ValueError, TypeError) as e:
            print(f"  WARNING: {layout['sheet']} row {row_num}: {e}, skipping.")
    return records


def load_store(filepath):
    """Load all collections from the workbook."""
    return {collection: load_collection(filepath, collection) for collection in COLLECTIONS}


def _field_matches(value, expected):
    if isinstance(expected, (list, tuple, set, frozenset)):
        return value in expected
    return value == expected


def filter_records(records, **filters):
    """Records whose fields match every filter.
    A list/tuple/set value matches by membership; anything else by equality."""
    return [r for r in records
            if all(_field_matches(r.get(field), expected) for field, expected in filters.items())]


def find_record(records, record_id):
    for record in records:
        if record["id"] == record_id:
            return record
    return None


def fetch_records(filepath, collection, **filters):
    """Fetch records from a collection filtered by field values."""
    return filter_records(load_collection(filepath, collection), **filters)


def fetch_record(filepath, collection, record_id):
    """Fetch one record by id. Raises RecordNotFoundError."""
    record = find_record(load_collection(filepath, collection), record_id)
    if record is None:
        raise RecordNotFoundError(collection, record_id)
    return record


def _open_sheet(wb, collection):
    """Return (worksheet, {field: column index}), creating the sheet/headers if needed."""
    layout = _collection_layout(collection)
    if layout["sheet"] in wb.sheetnames:
        ws = wb[layout["sheet"]]
    else:
        ws = wb.create_sheet(layout["sheet"])
    header_row = [clean_str(c.value) for c in ws[1]]
    while header_row and not header_row[-1]:
        header_row.pop()
    columns = {}
    for header, field in layout["columns"]:
        if header not in header_row:
            header_row.append(header)
            ws.cell(row=1, column=len(header_row), value=header)
        columns[field] = header_row.index(header) + 1
    return ws, columns


def _find_row(ws, id_column, record_id):
    for row_idx in range(2, ws.max_row + 1):
        if _clean_id(ws.cell(row=row_idx, column=id_column).value) == record_id:
            return row_idx
    return None


def _check_fields(collection, fields):
    known = {field for _, field in _collection_layout(collection)["columns"]}
    unknown = set(fields) - known
    if unknown:
        raise ValueError(f"Unknown {collection} field(s): {', '.join(sorted(unknown))}")


def insert_record(filepath, collection, fields):
    """Create a record in a collection. Generates id and created_at when absent."""
    _check_fields(collection, fields)
    record = {field: None for _, field in _collection_layout(collection)["columns"]}
    record.update(fields)
    record["id"] = fields.get("id") or str(uuid.uuid4())
    if not record.get("created_at"):
        record["created_at"] = datetime.now().replace(microsecond=0)

    wb = load_workbook(filepath)
    ws, columns = _open_sheet(wb, collection)
    row_idx = ws.max_row + 1
    for field, col in columns.items():
        ws.cell(row=row_idx, column=col, value=_to_cell(record.get(field)))
    wb.save(filepath)
    return NORMALIZERS[collection](record)


def update_record(filepath, collection, record_id, changes):
    """Update fields of the record with the given id. Returns the updated record."""
    _check_fields(collection, changes)
    if "id" in changes:
        raise ValueError("Record ids cannot be changed")

    wb = load_workbook(filepath)
    ws, columns = _open_sheet(wb, collection)
    row_idx = _find_row(ws, columns["id"], record_id)
    if row_idx is None:
        raise RecordNotFoundError(collection, record_id)
    for field, value in changes.items():
        ws.cell(row=row_idx, column=columns[field], value=_to_cell(value))
    wb.save(filepath)
    raw = {field: _cell_value(ws.cell(row=row_idx, column=col).value)
           for field, col in columns.items()}
    return NORMALIZERS[collection](raw)


def delete_records(filepath, collection, **filters):
    """Delete every row matching the filters. Returns how many were removed.

    Rows are matched on their raw id-style cells, so rows that fail to load
    (a bad date, say) are still removed by a cascade.
    """
    _check_fields(collection, filters)
    wb = load_workbook(filepath)
    ws, columns = _open_sheet(wb, collection)
    rows = []
    for row_idx in range(2, ws.max_row + 1):
        if not _clean_id(ws.cell(row=row_idx, column=columns["id"]).value):
            continue  # blank row
        raw = {field: _clean_id(ws.cell(row=row_idx, column=columns[field]).value) or None
               for field in filters}
        if all(_field_matches(raw[field], expected) for field, expected in filters.items()):
            rows.append(row_idx)
    if not rows:
        return 0
    for row_idx in reversed(rows):
        ws.delete_rows(row_idx)
    wb.save(filepath)
    return len(rows)


def delete_record(filepath, collection, record_id):
    if not delete_records(filepath, collection, id=record_id):
        raise RecordNotFoundError(collection, record_id)


# ── Template Generation ─────────────────────────────────────────────────────

def generate_template(output_path, reference_date=None):
    """Create a workbook with one sheet per collection, example data,
    a status dropdown, a progress range check, and status colours."""
    wb = Workbook()

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="2E3B4E", end_color="2E3B4E", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def style_header(ws, row=1):
        for cell in ws[row]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

    def style_data_rows(ws, start_row=2):
        for row in ws.iter_rows(min_row=start_row, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(vertical="center")

    def add_sheet(collection, rows, widths, first=False):
        layout = COLLECTIONS[collection]
        ws = wb.active if first else wb.create_sheet(layout["sheet"])
        ws.title = layout["sheet"]
        ws.append([header for header, _ in layout["columns"]])
        for row in rows:
            ws.append([row.get(field) for _, field in layout["columns"]])
        for idx, width in enumerate(widths):
            ws.column_dimensions[chr(ord("A") + idx)].width = width
        style_header(ws)
        style_data_rows(ws)
        ws.freeze_panes = "A2"
        return ws

    week0 = get_week_start(reference_date or datetime.now())
    now = datetime.now().replace(microsecond=0)
    ids = {key: str(uuid.uuid4()) for key in
           ("alex", "sam", "priya", "web", "app")}

    profiles = [
        {"id": ids["alex"], "email": "alex@example.com", "full_name": "Alex Morgan", "created_at": now},
        {"id": ids["sam"], "email": "sam@example.com", "full_name": "Sam Lee", "created_at": now},
        {"id": ids["priya"], "email": "priya@example.com", "full_name": None, "created_at": now},
    ]
    projects = [
        {"id": ids["web"], "name": "Website Relaunch", "description": "New marketing site",
         "admin_id": ids["alex"], "start_date": week0,
         "end_date": week0 + timedelta(weeks=10, days=-1), "created_at": now},
        {"id": ids["app"], "name": "Mobile App", "description": None,
         "admin_id": ids["sam"], "start_date": week0 + timedelta(weeks=2),
         "end_date": week0 + timedelta(weeks=14, days=-1), "created_at": now},
    ]
    members = [
        {"id": str(uuid.uuid4()), "project_id": ids["web"], "user_id": ids["sam"], "created_at": now},
        {"id": str(uuid.uuid4()), "project_id": ids["web"], "user_id": ids["priya"], "created_at": now},
        {"id": str(uuid.uuid4()), "project_id": ids["app"], "user_id": ids["alex"], "created_at": now},
    ]

    def task(project, name, person, start_offset, days, progress, status):
        start = week0 + timedelta(days=start_offset)
        return {"id": str(uuid.uuid4()), "project_id": ids[project], "name": name,
                "description": None, "assigned_to": ids[person] if person else None,
                "start_date": start, "end_date": start + timedelta(days=days - 1),
                "progress": progress, "status": status, "created_at": now}

    tasks = [
        task("web", "Content audit", "sam", 1, 5, 100, "completed"),
        task("web", "Wireframes", "alex", 1, 12, 40, "in_progress"),
        task("web", "Visual design", "priya", 8, 21, 0, "not_started"),
        task("web", "Build pages", "sam", 15, 35, 0, "pending"),
        task("web", "Launch checklist", None, 63, 7, 0, "not_started"),
        task("app", "API contract", "alex", 15, 10, 0, "blocked"),
        task("app", "Prototype", "sam", 22, 28, 0, "not_started"),
    ]

    add_sheet("profiles", profiles, [38, 26, 22, 20], first=True)
    add_sheet("projects", projects, [38, 24, 30, 38, 14, 14, 20])
    add_sheet("project_members", members, [38, 38, 38, 20])
    ws_tasks = add_sheet("tasks", tasks, [38, 38, 24, 30, 38, 14, 14, 11, 14, 20])
    add_sheet("invited_users", [], [38, 26, 38, 20])

    # ── Data Validations on Tasks sheet ──
    max_task_row = 200  # allow room for future rows

    dv_status = DataValidation(type="list", formula1=f'"{",".join(TASK_STATUS_VALUES)}"',
                               allow_blank=True)
    dv_status.error = "Please select a valid status"
    dv_status.errorTitle = "Invalid Status"
    ws_tasks.add_data_validation(dv_status)
    dv_status.add(f"I2:I{max_task_row}")

    dv_progress = DataValidation(type="whole", operator="between", formula1="0", formula2="100",
                                 allow_blank=True)
    dv_progress.error = "Progress must be a whole number from 0 to 100"
    dv_progress.errorTitle = "Invalid Progress"
    ws_tasks.add_data_validation(dv_progress)
    dv_progress.add(f"H2:H{max_task_row}")

    # ── Conditional Formatting on Tasks sheet ──
    status_range = f"I2:I{max_task_row}"
    for status, font_color, fill_color in (
            ("completed", "1B5E20", "C8E6C9"),
            ("in_progress", "0D47A1", "BBDEFB"),
            ("blocked", "B71C1C", "FFCDD2"),
            ("pending", "757575", "F5F5F5"),
            ("not_started", "757575", "F5F5F5")):
        ws_tasks.conditional_formatting.add(
            status_range,
            CellIsRule(operator="equal", formula=[f'"{status}"'],
                       font=Font(color=font_color), fill=PatternFill(bgColor=fill_color)))

    wb.save(output_path)
    print(f"Template created: {output_path}")
    print("  - Sheet 'Profiles': people who can own projects or be assigned tasks")
    print("  - Sheet 'Projects': projects with owner (Admin ID) and date range")
    print("  - Sheet 'Project Members': which people belong to which project")
    print("  - Sheet 'Tasks': tasks with assignee, dates, progress and status")
    print("  - Sheet 'Invited Users': emails invited before they had a profile")
    print("  - Dropdowns: Status; range check: Progress 0-100")
    print("\nRun again with --user <email> to generate the charts.")


# ── Data Validation ──────────────────────────────────────────────────────────

def _parse_field_date(fields, key, label, errors):
    try:
        return parse_date(fields.get(key), context=label)
    except (ValueError, TypeError) as e:
        errors.append(f"{str(e)[0].upper()}{str(e)[1:]}.")
        return None


def validate_project(fields):
    """Validate project fields. Returns (errors, warnings) lists."""
    errors = []
    warnings = []

    if not clean_str(fields.get("name")):
        errors.append("Project name is required.")
    start = _parse_field_date(fields, "start_date", "start date", errors)
    end = _parse_field_date(fields, "end_date", "end date", errors)
    if start and end and end <= start:
        errors.append(f"End date ({end:%Y-%m-%d}) must be after start date ({start:%Y-%m-%d}).")

    return errors, warnings


def validate_task(fields, project=None):
    """Validate task fields against its project. Returns (errors, warnings) lists."""
    errors = []
    warnings = []

    name = clean_str(fields.get("name"))
    if not name:
        errors.append("Task name is required.")
    start = _parse_field_date(fields, "start_date", "start date", errors)
    end = _parse_field_date(fields, "end_date", "end date", errors)
    if start and end and end < start:
        errors.append(f"End date ({end:%Y-%m-%d}) is before start date ({start:%Y-%m-%d}).")

    progress = fields.get("progress")
    if not _is_blank(progress) and clean_str(progress) != "":
        try:
            value = float(progress)
        except (ValueError, TypeError):
            errors.append(f"Progress {progress!r} is not a number.")
        else:
            if not 0 <= value <= 100:
                errors.append(f"Progress {value:g} must be between 0 and 100.")

    status = fields.get("status")
    if clean_str(status) and normalize_status(status) not in TASK_STATUS_VALUES:
        errors.append(f"Status '{status}' not recognised. Valid: {', '.join(TASK_STATUS_VALUES)}")

    if project and start and end:
        if start < project["start_date"] or end > project["end_date"]:
            warnings.append(
                f"Task '{name}' ({start:%Y-%m-%d} to {end:%Y-%m-%d}) falls outside project "
                f"'{project['name']}' ({project['start_date']:%Y-%m-%d} to {project['end_date']:%Y-%m-%d}).")

    return errors, warnings


# ── Timeline ─────────────────────────────────────────────────────────────────

def get_week_start(d):
    """Get the Sunday on or before the given date."""
    d = norm_date(d)
    return d - timedelta(days=(d.weekday() + 1) % 7)


def get_week_end(week_start):
    """Last day (Saturday) of the week starting on week_start."""
    return norm_date(week_start) + timedelta(days=WEEK_DAYS - 1)


def generate_weeks(reference_date, num_weeks=DEFAULT_WEEKS):
    """Week starts (Sundays) for num_weeks weeks, beginning with the week
    containing reference_date. Non-positive counts give an empty list."""
    if num_weeks <= 0:
        return []
    first = get_week_start(reference_date)
    return [first + timedelta(days=WEEK_DAYS * i) for i in range(num_weeks)]


def navigate_weeks(current_date, direction):
    """Page the timeline one week back ('prev') or forward ('next')."""
    if direction == "next":
        return current_date + timedelta(days=WEEK_DAYS)
    if direction == "prev":
        return current_date - timedelta(days=WEEK_DAYS)
    raise ValueError(f"direction must be 'prev' or 'next', got {direction!r}")


def format_week_header(week):
    """Column header such as 'Jan-05'."""
    return f"{week:%b}-{week.day:02d}"


def get_week_number(d):
    """Week of the year, counted in 7-day blocks from 1 January (1-based)."""
    d = norm_date(d)
    return (d - datetime(d.year, 1, 1)).days // WEEK_DAYS + 1


# ── Overlap & Capacity ───────────────────────────────────────────────────────

def get_overlap(entity, week_start):
    """How much of the week starting week_start an entity's date range covers.

    Returns None when they don't intersect, otherwise a dict with
    'percentage' (0-100], 'is_start' and 'is_end' (whether the entity's first
    or last day falls in this week). A single-day entity counts as the whole
    week. start_date <= end_date is a precondition, checked when records are
    created or edited.
    """
    start = norm_date(entity["start_date"])
    end = norm_date(entity["end_date"])
    week_start = norm_date(week_start)
    week_end = get_week_end(week_start)

    if end < week_start or start > week_end:
        return None

    if start == end:
        percentage = 100.0
    else:
        overlap_days = (min(end, week_end) - max(start, week_start)).days + 1
        percentage = min(100.0, overlap_days / WEEK_DAYS * 100)

    return {
        "percentage": percentage,
        "is_start": week_start <= start <= week_end,
        "is_end": week_start <= end <= week_end,
    }


def get_entity_segments(entity, weeks):
    """{week index: overlap} for every week the entity touches."""
    segments = {}
    for i, week in enumerate(weeks):
        overlap = get_overlap(entity, week)
        if overlap:
            segments[i] = overlap
    return segments


def get_tasks_for_member(tasks, member_id):
    return [t for t in tasks if t.get("assigned_to") == member_id]


def calculate_member_capacity(tasks, week_start, task_load=DEFAULT_TASK_LOAD):
    """Raw (unclamped) capacity a set of tasks uses in one week.

    Each task adds its week overlap scaled by task_load: a task covering the
    whole week at the default load of 50 adds 50%. Concurrent tasks simply add
    up, so the result can exceed 100.
    """
    contributions = []
    for task in tasks:
        overlap = get_overlap(task, week_start)
        if overlap:
            contributions.append(overlap["percentage"] / 100 * task_load)
    return math.fsum(contributions)


def clamp_capacity(value, ceiling=CAPACITY_CEILING):
    """Display value for a capacity bar. Tiers use the raw value."""
    return max(0.0, min(float(ceiling), value))


def get_available_capacity(used):
    """Capacity left in the week, never negative."""
    return max(0.0, CAPACITY_CEILING - used)


def classify_capacity(pct):
    """normal (<= 80), high (80-100], over (> 100)."""
    if pct > OVER_THRESHOLD:
        return TIER_OVER
    if pct > HIGH_THRESHOLD:
        return TIER_HIGH
    return TIER_NORMAL


def get_capacity_cell(tasks, week_start, task_load=DEFAULT_TASK_LOAD):
    """Everything the grid needs for one (person, week) cell."""
    raw = calculate_member_capacity(tasks, week_start, task_load)
    return {
        "raw": raw,
        "display": clamp_capacity(raw),
        "available": get_available_capacity(raw),
        "tier": classify_capacity(raw),
    }


def member_capacity_by_week(members, tasks, weeks, task_load=DEFAULT_TASK_LOAD):
    """{member id: [capacity cell per week]}."""
    return {
        member["id"]: [get_capacity_cell(get_tasks_for_member(tasks, member["id"]), w, task_load)
                       for w in weeks]
        for member in members
    }


# ── Authorization ────────────────────────────────────────────────────────────

def can_mutate(actor_id, project):
    """Only the project owner may change the project, its members or its tasks."""
    return bool(actor_id) and actor_id == project.get("admin_id")


def can_update_progress(actor_id, project, task):
    """Progress may also be updated by the task's assignee."""
    if task.get("project_id") != project.get("id"):
        return False
    if can_mutate(actor_id, project):
        return True
    return bool(actor_id) and actor_id == task.get("assigned_to")


def can_view(actor_id, project, member_ids=()):
    return can_mutate(actor_id, project) or actor_id in member_ids


def require_can_mutate(actor_id, project, action="change this project"):
    if not can_mutate(actor_id, project):
        raise NotPermittedError(action)


def require_can_update_progress(actor_id, project, task):
    if not can_update_progress(actor_id, project, task):
        raise NotPermittedError("update this task")


def require_can_view(actor_id, project, member_ids=()):
    if not can_view(actor_id, project, member_ids):
        raise NotPermittedError("view this project")


# ── Task Progress ────────────────────────────────────────────────────────────

def status_for_progress(progress):
    """Status implied by a progress value."""
    if progress >= 100:
        return "completed"
    if progress > 0:
        return "in_progress"
    return "not_started"


def progress_for_status(status, current_progress=0):
    """Progress implied by a status change. Blocked tasks keep their progress."""
    if status == "completed":
        return 100
    if status == "in_progress":
        return min(max(current_progress, 1), 99)
    if status == "blocked":
        return current_progress
    return 0


def check_progress_status(progress, status):
    """Errors for a progress/status pair that contradict each other.

    completed needs 100, not_started needs 0, pending allows 0-99,
    in_progress allows 1-99, and blocked allows anything.
    """
    allowed = {
        "completed": (100, 100),
        "not_started": (0, 0),
        "pending": (0, 99),
        "in_progress": (1, 99),
    }
    if status not in allowed:
        return []
    low, high = allowed[status]
    if low <= progress <= high:
        return []
    expected = f"{low}%" if low == high else f"{low}-{high}%"
    return [f"Progress {progress}% does not match status '{STATUS_LABELS[status]}' "
            f"(expected {expected})."]


def get_project_progress(tasks):
    """Percentage of tasks completed, rounded."""
    if not tasks:
        return 0
    completed = sum(1 for t in tasks if t["status"] == "completed")
    return round(completed / len(tasks) * 100)


# ── Mutations ────────────────────────────────────────────────────────────────

def _load_project_for_change(filepath, actor_id, project_id, action):
    project = fetch_record(filepath, "projects", project_id)
    require_can_mutate(actor_id, project, action)
    return project


def _find_profile_by_email(profiles, email):
    email = clean_str(email).lower()
    for person in profiles:
        if person["email"].lower() == email:
            return person
    return None


def create_profile(filepath, email, full_name=None):
    """Create a person's profile and accept any pending invitations for their email.

    Each invitation adds the new person to every project owned by whoever
    invited them.
    """
    email = clean_str(email).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address.")
    if _find_profile_by_email(fetch_records(filepath, "profiles"), email):
        raise ValidationError(f"A profile for {email} already exists.")

    person = insert_record(filepath, "profiles", {
        "email": email, "full_name": clean_str(full_name) or None})

    for invite in fetch_records(filepath, "invited_users", email=email):
        for project in fetch_records(filepath, "projects", admin_id=invite["invited_by"]):
            insert_record(filepath, "project_members",
                          {"project_id": project["id"], "user_id": person["id"]})
        delete_record(filepath, "invited_users", invite["id"])
    return person


def create_project(filepath, actor_id, name, start_date, end_date, description=None):
    """Create a project owned by actor_id."""
    fetch_record(filepath, "profiles", actor_id)
    errors, _ = validate_project({"name": name, "start_date": start_date, "end_date": end_date})
    if errors:
        raise ValidationError(errors)
    return insert_record(filepath, "projects", {
        "name": clean_str(name),
        "description": clean_str(description) or None,
        "admin_id": actor_id,
        "start_date": parse_date(start_date),
        "end_date": parse_date(end_date),
    })


def update_project(filepath, actor_id, project_id, changes):
    """Owner-only project edit. Returns (project, warnings).

    Tasks falling outside the new date range are reported as warnings and left
    as they are.
    """
    project = _load_project_for_change(filepath, actor_id, project_id, "edit this project")
    editable = {"name", "description", "start_date", "end_date"}
    unknown = set(changes) - editable
    if unknown:
        raise ValidationError(f"Cannot change project field(s): {', '.join(sorted(unknown))}")

    merged = {**project, **changes}
    errors, warnings = validate_project(merged)
    if errors:
        raise ValidationError(errors)

    start = parse_date(merged["start_date"])
    end = parse_date(merged["end_date"])
    for task in fetch_records(filepath, "tasks", project_id=project_id):
        if task["end_date"] > end:
            warnings.append(f"Task '{task['name']}' ends {task['end_date']:%Y-%m-%d}, "
                            f"after the project end date {end:%Y-%m-%d}.")
        if task["start_date"] < start:
            warnings.append(f"Task '{task['name']}' starts {task['start_date']:%Y-%m-%d}, "
                            f"before the project start date {start:%Y-%m-%d}.")

    cleaned = {}
    if "name" in changes:
        cleaned["name"] = clean_str(changes["name"])
    if "description" in changes:
        cleaned["description"] = clean_str(changes["description"]) or None
    if "start_date" in changes:
        cleaned["start_date"] = start
    if "end_date" in changes:
        cleaned["end_date"] = end
    return update_record(filepath, "projects", project_id, cleaned), warnings


def delete_project(filepath, actor_id, project_id):
    """Owner-only delete. Removes the project's tasks and memberships too.
    Returns {'tasks': n, 'members': n}."""
    _load_project_for_change(filepath, actor_id, project_id, "delete this project")
    removed_tasks = delete_records(filepath, "tasks", project_id=project_id)
    removed_members = delete_records(filepath, "project_members", project_id=project_id)
    delete_record(filepath, "projects", project_id)
    return {"tasks": removed_tasks, "members": removed_members}


def add_member_by_email(filepath, actor_id, project_id, email):
    """Add the person with this email to the project.

    Returns their profile, or None when nobody has that email yet; in that
    case an invitation is recorded instead.
    """
    project = _load_project_for_change(filepath, actor_id, project_id, "add members")
    email = clean_str(email).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address.")

    person = _find_profile_by_email(fetch_records(filepath, "profiles"), email)
    if person is None:
        if fetch_records(filepath, "invited_users", email=email):
            raise ValidationError(f"{email} has already been invited.")
        insert_record(filepath, "invited_users", {"email": email, "invited_by": actor_id})
        return None

    if person["id"] == project["admin_id"] or fetch_records(
            filepath, "project_members", project_id=project_id, user_id=person["id"]):
        raise ValidationError(f"{display_name(person)} is already a member of this project.")
    insert_record(filepath, "project_members", {"project_id": project_id, "user_id": person["id"]})
    return person


def remove_member(filepath, actor_id, project_id, member_id):
    """Remove a member from a project.

    Their tasks in the project stay but are unassigned, so they stop counting
    toward anyone's capacity. Returns the number of tasks unassigned.
    """
    project = _load_project_for_change(filepath, actor_id, project_id, "remove members")
    if member_id == project["admin_id"]:
        raise ValidationError("The project owner cannot be removed.")
    if not delete_records(filepath, "project_members", project_id=project_id, user_id=member_id):
        raise RecordNotFoundError("project_members", member_id)

    orphaned = fetch_records(filepath, "tasks", project_id=project_id, assigned_to=member_id)
    for task in orphaned:
        update_record(filepath, "tasks", task["id"], {"assigned_to": None})
    return len(orphaned)


def _owned_projects(filepath, lead_id):
    fetch_record(filepath, "profiles", lead_id)
    return fetch_records(filepath, "projects", admin_id=lead_id)


def add_member_to_all_projects(filepath, lead_id, email):
    """Add the person with this email to every project lead_id owns.

    Projects they already belong to are skipped. Returns (profile, projects
    joined); the profile is None when nobody has that email yet and an
    invitation was recorded instead.
    """
    email = clean_str(email).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address.")
    owned = _owned_projects(filepath, lead_id)

    person = _find_profile_by_email(fetch_records(filepath, "profiles"), email)
    if person is None:
        if fetch_records(filepath, "invited_users", email=email):
            raise ValidationError(f"{email} has already been invited.")
        insert_record(filepath, "invited_users", {"email": email, "invited_by": lead_id})
        return None, []
    if person["id"] == lead_id:
        raise ValidationError("You already own these projects.")
    if not owned:
        raise ValidationError("You don't own any projects to add members to.")

    current = {m["project_id"] for m in fetch_records(
        filepath, "project_members", user_id=person["id"], project_id=[p["id"] for p in owned])}
    joined = [p for p in owned if p["id"] not in current]
    if not joined:
        raise ValidationError(f"{display_name(person)} is already a member of all your projects.")
    for project in joined:
        insert_record(filepath, "project_members",
                      {"project_id": project["id"], "user_id": person["id"]})
    return person, joined


def remove_member_from_all_projects(filepath, lead_id, member_id):
    """Remove a person from every project lead_id owns.

    Their tasks in those projects are unassigned, as with remove_member.
    Returns (memberships removed, tasks unassigned).
    """
    if member_id == lead_id:
        raise ValidationError("You cannot remove yourself.")
    owned_ids = [p["id"] for p in _owned_projects(filepath, lead_id)]
    removed = delete_records(filepath, "project_members", user_id=member_id, project_id=owned_ids)
    if not removed:
        raise RecordNotFoundError("project_members", member_id)

    orphaned = fetch_records(filepath, "tasks", project_id=owned_ids, assigned_to=member_id)
    for task in orphaned:
        update_record(filepath, "tasks", task["id"], {"assigned_to": None})
    return removed, len(orphaned)


def _check_assignee(filepath, project, assignee, errors):
    if assignee and assignee != project["admin_id"] and not fetch_records(
            filepath, "project_members", project_id=project["id"], user_id=assignee):
        errors.append("Assignee must be a member of the project.")


def create_task(filepath, actor_id, project_id, fields):
    """Owner-only task creation. Returns (task, warnings)."""
    project = _load_project_for_change(filepath, actor_id, project_id, "add tasks")
    errors, warnings = validate_task(fields, project)
    assignee = _clean_id(fields.get("assigned_to")) or None
    _check_assignee(filepath, project, assignee, errors)
    if errors:
        raise ValidationError(errors)

    status = normalize_status(fields.get("status"))
    task = insert_record(filepath, "tasks", {
        "project_id": project_id,
        "name": clean_str(fields["name"]),
        "description": clean_str(fields.get("description")) or None,
        "assigned_to": assignee,
        "start_date": parse_date(fields["start_date"]),
        "end_date": parse_date(fields["end_date"]),
        "progress": progress_for_status(status, 0),
        "status": status,
    })
    return task, warnings


def update_task(filepath, actor_id, task_id, changes):
    """Owner-only edit of a task's name, description, assignee or dates.
    Returns (task, warnings)."""
    task = fetch_record(filepath, "tasks", task_id)
    project = _load_project_for_change(filepath, actor_id, task["project_id"], "edit this task")
    editable = {"name", "description", "assigned_to", "start_date", "end_date"}
    unknown = set(changes) - editable
    if unknown:
        raise ValidationError(f"Cannot change task field(s): {', '.join(sorted(unknown))}")

    merged = {**task, **changes}
    errors, warnings = validate_task(merged, project)
    assignee = _clean_id(merged.get("assigned_to")) or None
    if "assigned_to" in changes:
        _check_assignee(filepath, project, assignee, errors)
    if errors:
        raise ValidationError(errors)

    cleaned = {}
    if "name" in changes:
        cleaned["name"] = clean_str(changes["name"])
    if "description" in changes:
        cleaned["description"] = clean_str(changes["description"]) or None
    if "assigned_to" in changes:
        cleaned["assigned_to"] = assignee
    if "start_date" in changes:
        cleaned["start_date"] = parse_date(changes["start_date"])
    if "end_date" in changes:
        cleaned["end_date"] = parse_date(changes["end_date"])
    return update_record(filepath, "tasks", task_id, cleaned), warnings


def delete_task(filepath, actor_id, task_id):
    task = fetch_record(filepath, "tasks", task_id)
    _load_project_for_change(filepath, actor_id, task["project_id"], "delete this task")
    delete_record(filepath, "tasks", task_id)


def update_task_progress(filepath, actor_id, task_id, progress=None, status=None):
    """Set a task's progress and/or status, keeping the two consistent.

    Allowed for the project owner and the task's assignee. Giving only a
    progress derives the status; giving only a status derives the progress.
    """
    task = fetch_record(filepath, "tasks", task_id)
    project = fetch_record(filepath, "projects", task["project_id"])
    require_can_update_progress(actor_id, project, task)

    if progress is None and status is None:
        raise ValidationError("Nothing to update: give a progress or a status.")
    errors, _ = validate_task({**task, "progress": progress, "status": status})
    if errors:
        raise ValidationError(errors)

    if status is not None:
        status = normalize_status(status)
    if progress is None:
        progress = progress_for_status(status, task["progress"])
    else:
        progress = int(round(float(progress)))
        if status is None:
            status = status_for_progress(progress)
        else:
            errors = check_progress_status(progress, status)
            if errors:
                raise ValidationError(errors)
    return update_record(filepath, "tasks", task_id, {"progress": progress, "status": status})


# ── View Loading ─────────────────────────────────────────────────────────────

def _created_sort_key(record):
    return record.get("created_at") or datetime.min


def _dedupe_by_id(records):
    seen = set()
    unique = []
    for record in records:
        if record["id"] not in seen:
            seen.add(record["id"])
            unique.append(record)
    return unique


def resolve_user(filepath, ident):
    """Find a profile by id or email."""
    profiles = load_collection(filepath, "profiles")
    person = find_record(profiles, clean_str(ident)) or _find_profile_by_email(profiles, ident)
    if person is None:
        raise RecordNotFoundError("profiles", ident)
    return person


def attach_related(tasks, projects, profiles):
    """Copies of tasks with 'project' {id, name} and 'assignee' {full_name, email} filled in."""
    project_by_id = {p["id"]: p for p in projects}
    person_by_id = {p["id"]: p for p in profiles}
    result = []
    for task in tasks:
        task = dict(task)
        if task.get("project") is None and task["project_id"] in project_by_id:
            project = project_by_id[task["project_id"]]
            task["project"] = {"id": project["id"], "name": project["name"]}
        if task.get("assignee") is None and task.get("assigned_to") in person_by_id:
            person = person_by_id[task["assigned_to"]]
            task["assignee"] = {"full_name": person["full_name"], "email": person["email"]}
        result.append(task)
    return result


def collect_members(projects, memberships, profiles, first=None):
    """Unique people across the projects: owners plus members, `first` leading."""
    person_by_id = {p["id"]: p for p in profiles}
    for m in memberships:
        if m.get("profile") and m["user_id"] not in person_by_id:
            person_by_id[m["user_id"]] = m["profile"]

    ordered_ids = [first["id"]] if first else []
    for project in projects:
        ordered_ids.append(project["admin_id"])
        ordered_ids.extend(m["user_id"] for m in memberships if m["project_id"] == project["id"])

    members = []
    seen = set()
    for person_id in ordered_ids:
        if person_id in seen:
            continue
        seen.add(person_id)
        person = person_by_id.get(person_id)
        if person is None:
            print(f"  WARNING: Member '{person_id}' has no profile, skipping.")
            continue
        members.append(person)
    return members


def load_dashboard(filepath, user_id):
    """Everything the dashboard shows for one person.

    Projects they own or belong to (newest first), the assigned tasks of those
    projects (by start date), and the people on those projects.
    """
    store = load_store(filepath)
    user = find_record(store["profiles"], user_id)
    if user is None:
        raise RecordNotFoundError("profiles", user_id)

    owned = filter_records(store["projects"], admin_id=user_id)
    member_of = {m["project_id"] for m in filter_records(store["project_members"], user_id=user_id)}
    projects = _dedupe_by_id(owned + filter_records(store["projects"], id=member_of))
    projects.sort(key=_created_sort_key, reverse=True)

    project_ids = {p["id"] for p in projects}
    tasks = [t for t in filter_records(store["tasks"], project_id=project_ids) if t["assigned_to"]]
    tasks = attach_related(tasks, projects, store["profiles"])
    tasks.sort(key=lambda t: (t["start_date"], t["end_date"]))

    memberships = filter_records(store["project_members"], project_id=project_ids)
    members = collect_members(projects, memberships, store["profiles"], first=user)
    return {"user": user, "projects": projects, "tasks": tasks, "members": members}


def load_project_view(filepath, project_id, user_id):
    """One project with all its tasks and members, for its owner or a member.
    Raises RecordNotFoundError or NotPermittedError."""
    store = load_store(filepath)
    project = find_record(store["projects"], project_id)
    if project is None:
        raise RecordNotFoundError("projects", project_id)

    memberships = filter_records(store["project_members"], project_id=project_id)
    require_can_view(user_id, project, {m["user_id"] for m in memberships})

    tasks = attach_related(filter_records(store["tasks"], project_id=project_id),
                           [project], store["profiles"])
    tasks.sort(key=lambda t: (t["start_date"], t["end_date"]))
    members = collect_members([project], memberships, store["profiles"])
    return {
        "project": project,
        "projects": [project],
        "tasks": tasks,
        "members": members,
        "is_admin": can_mutate(user_id, project),
        "progress": get_project_progress(tasks),
    }


def load_team(filepath, lead_id, search=None):
    """Everyone on the projects lead_id owns, the lead first.

    Each entry is the person's profile plus 'role' ('owner' or 'member'),
    'projects' ({id, name} of the lead's projects they are on) and
    'project_count'. A search keeps people whose name or email contains it,
    ignoring case.
    """
    store = load_store(filepath)
    lead = find_record(store["profiles"], lead_id)
    if lead is None:
        raise RecordNotFoundError("profiles", lead_id)

    refs = {p["id"]: {"id": p["id"], "name": p["name"]}
            for p in filter_records(store["projects"], admin_id=lead_id)}
    person_by_id = {p["id"]: p for p in store["profiles"]}
    team = {lead_id: {**lead, "role": "owner", "projects": list(refs.values())}}

    for m in filter_records(store["project_members"], project_id=set(refs)):
        if m["user_id"] == lead_id:
            continue
        person = person_by_id.get(m["user_id"]) or m.get("profile")
        if person is None:
            print(f"  WARNING: Member '{m['user_id']}' has no profile, skipping.")
            continue
        entry = team.setdefault(person["id"], {**person, "role": "member", "projects": []})
        if refs[m["project_id"]] not in entry["projects"]:
            entry["projects"].append(refs[m["project_id"]])

    members = list(team.values())
    for entry in members:
        entry["project_count"] = len(entry["projects"])

    needle = clean_str(search).lower()
    if needle:
        members = [e for e in members
                   if needle in (e["full_name"] or "").lower() or needle in e["email"].lower()]
    return members


def build_capacity_rows(members, tasks, weeks, task_load=DEFAULT_TASK_LOAD):
    """Rows of the capacity grid.

    Per member: one 'project' row for each project they have tasks in, whose
    cells hold the member's capacity for the week when that project has a task
    in it (None otherwise), then one 'available' row with the remaining
    capacity per week.
    """
    capacity = member_capacity_by_week(members, tasks, weeks, task_load)
    rows = []
    for member in members:
        member_tasks = get_tasks_for_member(tasks, member["id"])
        name = display_name(member)

        project_ids = []
        for task in member_tasks:
            if task["project_id"] not in project_ids:
                project_ids.append(task["project_id"])

        for p_idx, project_id in enumerate(project_ids):
            project_tasks = [t for t in member_tasks if t["project_id"] == project_id]
            ref = project_tasks[0].get("project")
            cells = []
            for w_idx, week in enumerate(weeks):
                has_task = any(get_overlap(t, week) for t in project_tasks)
                cells.append(capacity[member["id"]][w_idx] if has_task else None)
            # 1-based grid columns, so a span across New Year stays ordered
            active = [i + 1 for i, cell in enumerate(cells) if cell is not None]
            rows.append({
                "kind": "project",
                "member_id": member["id"],
                "member_name": name,
                "member_label": name if p_idx == 0 else "",
                "project_id": project_id,
                "project_name": ref["name"] if ref else project_id,
                "first_week": active[0] if active else None,
                "last_week": active[-1] if active else None,
                "task_count": len(project_tasks),
                "cells": cells,
            })

        rows.append({
            "kind": "available",
            "member_id": member["id"],
            "member_name": name,
            "member_label": "" if project_ids else name,
            "cells": [{"available": cell["available"]} for cell in capacity[member["id"]]],
        })
    return rows


# ── Chart: Capacity Grid ─────────────────────────────────────────────────────

def _row_label(row):
    if row["kind"] == "available":
        prefix = f"{row['member_label']}  ·  " if row["member_label"] else ""
        return f"{prefix}Available"
    prefix = f"{row['member_label']}  ·  " if row["member_label"] else ""
    if row["first_week"] is None:
        return f"{prefix}{row['project_name']}"
    return f"{prefix}{row['project_name']}  (wk {row['first_week']}-{row['last_week']})"


def render_capacity_chart(rows, weeks, output_path, title="Team Capacity"):
    """Render the member x week capacity grid."""
    apply_style()

    if not rows or not weeks:
        print("  No capacity data. Check: members exist and the week window is not empty.")
        return

    n_rows = len(rows)
    n_weeks = len(weeks)
    cell_width = STYLE["cell_width"]

    fig_height = max(5, n_rows * 0.5 + 3)
    fig = plt.figure(figsize=(STYLE["fig_width"], fig_height), facecolor=STYLE["bg_color"])
    ax = fig.add_axes([0.22, 0.12, 0.74, 0.76])

    y_ticks = []
    y_labels = []
    for r_idx, row in enumerate(rows):
        y = n_rows - 1 - r_idx
        shade = STYLE["row_shade_even"] if r_idx % 2 == 0 else STYLE["row_shade_odd"]
        ax.axhspan(y - 0.5, y + 0.5, color=shade, alpha=0.6, zorder=0)

        for i, cell in enumerate(row["cells"]):
            if cell is None:
                continue
            if row["kind"] == "available":
                pct = cell["available"]
                color = STYLE["available_color"]
                label = f"{round(pct)}%" if pct > 0 else ""
            else:
                pct = cell["display"]
                color = TIER_COLORS[cell["tier"]]
                label = f"{round(cell['raw'])}%" if cell["raw"] > 0 else ""
            # Empty track, then the filled share of it
            draw_rounded_bar(ax, i - cell_width / 2, y, cell_width, STYLE["bar_height"],
                             STYLE["grid_color"], alpha=0.35, linewidth=0.5, zorder=2)
            draw_rounded_bar(ax, i - cell_width / 2, y, cell_width * pct / 100,
                             STYLE["bar_height"], color, alpha=0.85, linewidth=0.8)
            if label:
                weight = "bold" if row["kind"] == "project" and cell["tier"] == TIER_OVER else "normal"
                ax.text(i, y, label, ha="center", va="center",
                        fontsize=STYLE["small_size"], color=STYLE["text_primary"],
                        fontweight=weight, zorder=5)

        y_ticks.append(y)
        y_labels.append(_row_label(row))

    x_positions = np.arange(n_weeks)
    ax.set_xlim(-0.6, n_weeks - 0.4)
    ax.set_ylim(-0.6, n_rows - 0.2)
    ax.set_xticks(x_positions)
    ax.set_xticklabels([format_week_header(w) for w in weeks],
                       rotation=45, ha="right", fontsize=STYLE["tick_size"])
    ax.set_yticks(y_ticks)
    ax.set_yticklabels(y_labels, fontsize=STYLE["label_size"])
    draw_today_marker(ax, weeks, n_rows - 0.45)

    legend_handles = [
        mpatches.Patch(facecolor=TIER_COLORS[TIER_NORMAL], alpha=0.85,
                       label=f"Allocated (≤{HIGH_THRESHOLD}%)"),
        mpatches.Patch(facecolor=TIER_COLORS[TIER_HIGH], alpha=0.85,
                       label=f"High ({HIGH_THRESHOLD}-{OVER_THRESHOLD}%)"),
        mpatches.Patch(facecolor=TIER_COLORS[TIER_OVER], alpha=0.85,
                       label=f"Over capacity (>{OVER_THRESHOLD}%)"),
        mpatches.Patch(facecolor=STYLE["available_color"], alpha=0.85,
                       label="Available capacity"),
    ]
    ax.legend(handles=legend_handles, loc="upper center", bbox_to_anchor=(0.5, -0.12),
              ncol=len(legend_handles), fontsize=STYLE["small_size"], framealpha=0.9,
              edgecolor=STYLE["grid_color"], fancybox=True)

    style_axes(ax, title="Weekly Capacity (Per Person)", show_grid_x=True)
    date_range = f"{weeks[0]:%d %b %Y} — {get_week_end(weeks[-1]):%d %b %Y}"
    add_header_footer(fig, f"{title}: {date_range}")

    _save_figure(fig, output_path)
    print(f"  Capacity chart saved: {output_path}")


# ── Chart: Task Gantt ────────────────────────────────────────────────────────

def _segment_left(i, width, overlap):
    """Left edge of a segment inside its week column [i-0.5, i+0.5].
    A starting segment hugs the right edge so it joins the next week."""
    if overlap["is_start"] and overlap["is_end"]:
        return i - width / 2
    if overlap["is_start"]:
        return i + 0.5 - width
    return i - 0.5


def render_task_gantt(tasks, weeks, output_path, title="Task Timeline"):
    """Render one row per task, split into weekly segments."""
    apply_style()

    rows = [(t, get_entity_segments(t, weeks)) for t in tasks]
    rows = [(t, segments) for t, segments in rows if segments]
    if not rows or not weeks:
        print("  No Gantt data. Check: tasks have valid dates inside the week window.")
        return

    n_rows = len(rows)
    n_weeks = len(weeks)
    bar_height = STYLE["bar_height"]

    fig_height = max(5, n_rows * 0.45 + 3)
    fig = plt.figure(figsize=(STYLE["fig_width"], fig_height), facecolor=STYLE["bg_color"])
    ax = fig.add_axes([0.22, 0.12, 0.72, 0.76])

    y_ticks = []
    y_labels = []
    for r_idx, (task, segments) in enumerate(rows):
        y = n_rows - 1 - r_idx
        shade = STYLE["row_shade_even"] if r_idx % 2 == 0 else STYLE["row_shade_odd"]
        ax.axhspan(y - 0.5, y + 0.5, color=shade, alpha=0.6, zorder=0)

        color = STATUS_COLORS.get(task["status"], STATUS_COLORS["not_started"])
        alpha = 0.45 if task["status"] == "completed" else 0.9
        right_edge = None
        for i, overlap in segments.items():
            width = overlap["percentage"] / 100
            left = _segment_left(i, width, overlap)
            if overlap["is_start"] or overlap["is_end"]:
                draw_rounded_bar(ax, left, y, width, bar_height, color, alpha=alpha, linewidth=0.8)
            else:
                ax.barh(y, width, left=left, height=bar_height, color=color,
                        alpha=alpha, edgecolor=color, linewidth=0.8, zorder=3)
            right_edge = left + width

        ax.text(right_edge + 0.08, y, f"{task['progress']}%", va="center", ha="left",
                fontsize=STYLE["small_size"], color=STYLE["text_secondary"], zorder=6)

        assignee = display_name(task.get("assignee")) or "Unassigned"
        y_ticks.append(y)
        y_labels.append(f"{task['name']}  ({assignee})")

    ax.set_xlim(-0.6, n_weeks - 0.4)
    ax.set_ylim(-0.6, n_rows - 0.2)
    ax.set_xticks(np.arange(n_weeks))
    ax.set_xticklabels([format_week_header(w) for w in weeks],
                       rotation=45, ha="right", fontsize=STYLE["tick_size"])
    ax.set_yticks(y_ticks)
    ax.set_yticklabels(y_labels, fontsize=STYLE["label_size"])
    for i in range(1, n_weeks):
        ax.axvline(i - 0.5, color=STYLE["grid_color"], linewidth=0.5, alpha=0.6, zorder=1)
    draw_today_marker(ax, weeks, n_rows - 0.45)

    used_statuses = [s for s in TASK_STATUS_VALUES if any(t["status"] == s for t, _ in rows)]
    legend_handles = [mpatches.Patch(facecolor=STATUS_COLORS[s], alpha=0.9, label=STATUS_LABELS[s])
                      for s in used_statuses]
    if legend_handles:
        ax.legend(handles=legend_handles, loc="upper center", bbox_to_anchor=(0.5, -0.12),
                  ncol=len(legend_handles), fontsize=STYLE["small_size"], framealpha=0.9,
                  edgecolor=STYLE["grid_color"], fancybox=True)

    style_axes(ax, title="Tasks by Week", show_grid_x=False)
    date_range = f"{weeks[0]:%d %b %Y} — {get_week_end(weeks[-1]):%d %b %Y}"
    add_header_footer(fig, f"{title}: {date_range}")

    _save_figure(fig, output_path)
    print(f"  Gantt chart saved: {output_path}")


# ── Summary ──────────────────────────────────────────────────────────────────

def print_summary(projects, tasks, members, weeks, task_load=DEFAULT_TASK_LOAD):
    """Print capacity summary statistics to console."""
    status_counts = {s: sum(1 for t in tasks if t["status"] == s) for s in TASK_STATUS_VALUES}
    status_parts = [f"{n} {STATUS_LABELS[s].lower()}" for s, n in status_counts.items() if n]
    capacity = member_capacity_by_week(members, tasks, weeks, task_load)

    print()
    print("=" * 60)
    print("  CAPACITY SUMMARY")
    print("=" * 60)
    print(f"  Projects:      {len(projects)}")
    print(f"  Tasks:         {len(tasks)} total"
          f"{' (' + ', '.join(status_parts) + ')' if status_parts else ''}")
    print(f"  Members:       {len(members)}")
    if weeks:
        print(f"  Timeline:      {len(weeks)} weeks "
              f"({weeks[0]:%d %b %Y} — {get_week_end(weeks[-1]):%d %b %Y})")
    print(f"  Task load:     {task_load:g}% per full-week task")

    if weeks and members:
        print()
        print("  Peak capacity:")
        over_detail = {}
        for member in members:
            cells = capacity[member["id"]]
            peak_idx = max(range(len(weeks)), key=lambda i: cells[i]["raw"])
            peak = cells[peak_idx]
            if peak["raw"] > 0:
                print(f"    {display_name(member)}: {peak['raw']:.0f}% ({peak['tier']}) "
                      f"in w/c {weeks[peak_idx]:%d %b} (week {get_week_number(weeks[peak_idx])})")
            else:
                print(f"    {display_name(member)}: no allocation")
            over = [(weeks[i], c["raw"]) for i, c in enumerate(cells) if c["tier"] == TIER_OVER]
            if over:
                over_detail[member["id"]] = (member, over)

        over_weeks = len({w for _, entries in over_detail.values() for w, _ in entries})
        print(f"  Over-capacity: {over_weeks} of {len(weeks)} weeks")
        for member, entries in over_detail.values():
            detail_strs = [f"w/c {w:%d %b} ({pct:.0f}%)" for w, pct in entries[:3]]
            suffix = f" ... +{len(entries) - 3} more" if len(entries) > 3 else ""
            print(f"    {display_name(member)}: {', '.join(detail_strs)}{suffix}")

    if projects:
        print()
        print("  Project progress:")
        for project in projects:
            p_tasks = [t for t in tasks if t["project_id"] == project["id"]]
            done = sum(1 for t in p_tasks if t["status"] == "completed")
            print(f"    {project['name']}: {get_project_progress(p_tasks)}% "
                  f"({done} of {len(p_tasks)} task{'s' if len(p_tasks) != 1 else ''} complete)")

    unassigned = [t for t in tasks if not t.get("assigned_to")]
    if unassigned:
        print()
        print(f"  Unassigned tasks: {len(unassigned)}")
        for t in unassigned:
            print(f"    {t['name']} ({t['start_date']:%d %b} - {t['end_date']:%d %b})")

    print("=" * 60)
    print()


def print_team(team, lead, search=None):
    """Print the people on a lead's projects with their project counts."""
    print()
    print("=" * 60)
    print(f"  TEAM (projects owned by {display_name(lead)})")
    print("=" * 60)
    if search:
        print(f"  Search: '{search}'")
    if not team:
        print("  No team members found." if not search else "  No team members match.")
    for entry in team:
        count = entry["project_count"]
        print(f"  {display_name(entry):<24} {entry['role']:<7} "
              f"{count} project{'s' if count != 1 else ''}")
        if entry["projects"]:
            print(f"    {', '.join(p['name'] for p in entry['projects'])}")
    print("=" * 60)
    print()


# ── Main ─────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(
        description="Team Capacity Planner — weekly capacity and Gantt charts from an Excel workbook"
    )
    parser.add_argument(
        "--template", action="store_true",
        help="Generate a workbook template with example data"
    )
    parser.add_argument(
        "--input", default=DEFAULT_INPUT,
        help="Path to the Excel workbook (default: team_data.xlsx)"
    )
    parser.add_argument(
        "--user", default=None,
        help="Acting person, by profile ID or email"
    )
    parser.add_argument(
        "--project", default=None,
        help="Show a single project instead of the dashboard"
    )
    parser.add_argument(
        "--date", default=None,
        help="Reference date for the timeline (YYYY-MM-DD, default: today)"
    )
    parser.add_argument(
        "--offset", type=int, default=0,
        help="Page the timeline by this many weeks (negative = earlier)"
    )
    parser.add_argument(
        "--weeks", type=int, default=DEFAULT_WEEKS,
        help=f"Number of weeks in the timeline (default: {DEFAULT_WEEKS})"
    )
    parser.add_argument(
        "--display-weeks", type=int, default=DEFAULT_DISPLAY_WEEKS,
        help=f"Number of week columns drawn on charts (default: {DEFAULT_DISPLAY_WEEKS})"
    )
    parser.add_argument(
        "--task-load", type=float, default=DEFAULT_TASK_LOAD,
        help=f"Capacity one full-week task takes, in percent (default: {DEFAULT_TASK_LOAD})"
    )
    parser.add_argument(
        "--progress", nargs=2, metavar=("TASK_ID", "PERCENT"), default=None,
        help="Update a task's progress before rendering (owner or assignee only)"
    )
    parser.add_argument(
        "--team", action="store_true",
        help="List everyone on the projects you own, then exit"
    )
    parser.add_argument(
        "--search", default=None,
        help="With --team: only show people whose name or email contains this text"
    )
    parser.add_argument(
        "--add-member", default=None, metavar="EMAIL",
        help="Add a person to every project you own (invites unknown emails)"
    )
    parser.add_argument(
        "--remove-member", default=None, metavar="USER",
        help="Remove a person (ID or email) from every project you own"
    )
    parser.add_argument(
        "--outdir", default=None,
        help="Output directory for all charts (default: output/)"
    )
    parser.add_argument(
        "--charts", default=["all"], nargs="+",
        choices=["all", "capacity", "gantt"],
        help="Which charts to generate (default: all)"
    )
    args = parser.parse_args()

    if args.template:
        generate_template(args.input)
        return

    if not os.path.exists(args.input):
        print(f"Error: Input file not found: {args.input}")
        print("Run with --template first to create a template.")
        sys.exit(1)

    if not args.user:
        print("  ERROR: --user is required (profile ID or email).")
        sys.exit(1)
    if args.task_load <= 0:
        print(f"  ERROR: --task-load must be positive, got {args.task_load:g}.")
        sys.exit(1)

    reference = norm_date(datetime.now())
    if args.date:
        try:
            reference = datetime.strptime(args.date, "%Y-%m-%d")
        except ValueError:
            print(f"  ERROR: Invalid --date '{args.date}'. Use YYYY-MM-DD format.")
            sys.exit(1)
    direction = "next" if args.offset > 0 else "prev"
    for _ in range(abs(args.offset)):
        reference = navigate_weeks(reference, direction)
    weeks = generate_weeks(reference, args.weeks)
    display_weeks = weeks[:max(0, args.display_weeks)]

    out_dir = args.outdir or DEFAULT_OUTDIR
    capacity_path = os.path.join(out_dir, "capacity.png")
    gantt_path = os.path.join(out_dir, "gantt.png")

    print(f"Loading data from: {args.input}")
    try:
        mtime = datetime.fromtimestamp(os.path.getmtime(args.input))
        STYLE["_data_mtime"] = mtime.strftime("%d %b %Y %H:%M")
    except OSError:
        pass

    try:
        user = resolve_user(args.input, args.user)
        print(f"  User: {display_name(user)}")

        if args.add_member:
            person, joined = add_member_to_all_projects(args.input, user["id"], args.add_member)
            if person is None:
                print(f"  Invitation recorded for {args.add_member.strip().lower()}. "
                      f"They will be added to your projects when they sign up.")
            else:
                print(f"  Added {display_name(person)} to: {', '.join(p['name'] for p in joined)}")

        if args.remove_member:
            member = resolve_user(args.input, args.remove_member)
            removed, unassigned = remove_member_from_all_projects(args.input, user["id"], member["id"])
            print(f"  Removed {display_name(member)} from {removed} project(s), "
                  f"{unassigned} task(s) unassigned")

        if args.team:
            print_team(load_team(args.input, user["id"], args.search), user, args.search)
            return

        if args.progress:
            task_id, percent = args.progress
            try:
                task = update_task_progress(args.input, user["id"], task_id, progress=percent)
            except NotPermittedError as e:
                print(f"  ERROR: {e}. Only the project owner or the assignee can update progress.")
                sys.exit(1)
            print(f"  Updated '{task['name']}': {task['progress']}% ({STATUS_LABELS.get(task['status'], task['status'])})")

        view = None
        if args.project:
            try:
                view = load_project_view(args.input, args.project, user["id"])
                title = view["project"]["name"]
                print(f"  Project: {title} ({'admin' if view['is_admin'] else 'member'})")
            except (RecordNotFoundError, NotPermittedError) as e:
                print(f"  WARNING: {e}. Showing the dashboard instead.")
        if view is None:
            view = load_dashboard(args.input, user["id"])
            title = "Team Capacity"
    except RecordNotFoundError as e:
        print(f"  ERROR: {e}")
        sys.exit(1)
    except ValidationError as e:
        for err in e.errors:
            print(f"  ERROR: {err}")
        sys.exit(1)
    except OSError as e:
        print(f"  ERROR: Could not read or write {args.input}: {e}. Please try again.")
        sys.exit(1)
    except (ValueError, zipfile.BadZipFile) as e:
        print(f"  ERROR: {args.input} is not a readable Excel workbook: {e}")
        sys.exit(1)

    projects, tasks, members = view["projects"], view["tasks"], view["members"]
    print(f"  Projects: {len(projects)}")
    print(f"  Tasks: {len(tasks)}")
    print(f"  Members: {', '.join(display_name(m) for m in members)}")
    if weeks:
        print(f"  Weeks: {format_week_header(weeks[0])} to {format_week_header(weeks[-1])}")

    assigned = [t for t in tasks if t.get("assigned_to")]
    rows = build_capacity_rows(members, assigned, display_weeks, args.task_load)

    # Summary (capture output for summary.txt)
    summary_capture = io.StringIO()
    _orig_stdout = sys.stdout
    sys.stdout = _TeeWriter(_orig_stdout, summary_capture)
    try:
        print_summary(projects, tasks, members, weeks, args.task_load)
    finally:
        sys.stdout = _orig_stdout
    summary_text = summary_capture.getvalue()

    charts = args.charts
    gen_all = "all" in charts
    output_files = []

    if gen_all or "capacity" in charts:
        render_capacity_chart(rows, display_weeks, capacity_path, title=title)
        output_files.append(capacity_path)

    if gen_all or "gantt" in charts:
        render_task_gantt(tasks, display_weeks, gantt_path, title=title)
        output_files.append(gantt_path)

    os.makedirs(out_dir, exist_ok=True)
    summary_path = os.path.join(out_dir, "summary.txt")
    with open(summary_path, "w", encoding="utf-8") as sf:
        sf.write(summary_text)
    output_files.append(summary_path)

    print()
    print("  Output:")
    for f in output_files:
        if os.path.exists(f):
            print(f"    {os.path.abspath(f)}")
    print("\nDone.")


if __name__ == "__main__":
    main()
