from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from models import COUNTER_ROW_ID, CounterRow

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(db: Session):
    return _UPSERT_DIALECTS.get(db.get_bind().dialect.name)


def record_visitor(db: Session) -> None:
    """Count one new visitor, creating the counter row on first use.

    Runs as a single INSERT ... ON CONFLICT DO UPDATE so two first-time visitors
    arriving together both get counted.
    """
    insert = _insert_for(db)
    if insert is None:
        raise NotImplementedError(
            f"No atomic upsert for dialect {db.get_bind().dialect.name!r}"
        )
    stmt = insert(CounterRow).values(id=COUNTER_ROW_ID, total_visitors=1, total_clicks=0)
    stmt = stmt.on_conflict_do_update(
        index_elements=[CounterRow.id],
        set_={"total_visitors": CounterRow.total_visitors + 1},
    )
    db.execute(stmt)
    db.commit()


def record_click(db: Session) -> None:
    """Add one click to the global total as a single atomic statement.

    Dialects without an upsert fall back to a plain UPDATE, which needs the row
    to exist already.
    """
    insert = _insert_for(db)
    if insert is None:
        stmt = (
            update(CounterRow)
            .where(CounterRow.id == COUNTER_ROW_ID)
            .values(total_clicks=CounterRow.total_clicks + 1)
        )
    else:
        stmt = insert(CounterRow).values(id=COUNTER_ROW_ID, total_visitors=0, total_clicks=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CounterRow.id],
            set_={"total_clicks": CounterRow.total_clicks + 1},
        )
    db.execute(stmt)
    db.commit()


def read_counters(db: Session) -> dict:
    row = db.execute(
        select(CounterRow.total_visitors, CounterRow.total_clicks)
        .where(CounterRow.id == COUNTER_ROW_ID)
    ).first()
    if row is None:
        return {"total_visitors": 0, "total_clicks": 0}
    return {"total_visitors": row.total_visitors, "total_clicks": row.total_clicks}
