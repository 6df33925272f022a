"""
Schreibschutz für Compliance-Nachweise.

Zwei Ebenen: ORM-Listener (greifen bei jedem Flush) und Datenbank-Trigger
(greifen auch bei Raw-SQL). Die Trigger-DDL wird sowohl bei create_all als
auch in der Alembic-Migration verwendet.
"""
from sqlalchemy import DDL, Table, event, inspect

from worktime.core.exceptions import ConflictError

PG_REJECT_FUNCTION = """
CREATE OR REPLACE FUNCTION compliance_reject_mutation() RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION '% is append-only', TG_TABLE_NAME;
END;
$$ LANGUAGE plpgsql
"""


def sqlite_trigger_statements(table: str, operations: tuple[str, ...]) -> list[str]:
    return [
        f"CREATE TRIGGER IF NOT EXISTS {table}_no_{op.lower()} BEFORE {op} ON {table} "
        f"BEGIN SELECT RAISE(ABORT, '{table} is append-only'); END"
        for op in operations
    ]


def postgresql_trigger_statements(table: str, operations: tuple[str, ...]) -> list[str]:
    ops = " OR ".join(operations)
    return [
        f"DROP TRIGGER IF EXISTS {table}_append_only ON {table}",
        f"CREATE TRIGGER {table}_append_only BEFORE {ops} ON {table} "
        f"FOR EACH ROW EXECUTE FUNCTION compliance_reject_mutation()",
    ]


def protect_table(table: Table, operations: tuple[str, ...] = ("UPDATE", "DELETE")) -> None:
    """Registriert die Trigger-DDL für create_all (SQLite und PostgreSQL)."""
    for statement in sqlite_trigger_statements(table.name, operations):
        event.listen(table, "after_create", DDL(statement).execute_if(dialect="sqlite"))

    # DDL formatiert mit "%"-Operator, daher das Literal escapen
    pg_function = DDL(PG_REJECT_FUNCTION.replace("%", "%%"))
    event.listen(table, "after_create", pg_function.execute_if(dialect="postgresql"))
    for statement in postgresql_trigger_statements(table.name, operations):
        event.listen(table, "after_create", DDL(statement).execute_if(dialect="postgresql"))


def forbid_mutation(model, mutable_fields: frozenset[str] = frozenset()) -> None:
    """ORM-Listener: Löschen immer verboten, Update nur für mutable_fields."""

    @event.listens_for(model, "before_update")
    def _reject_update(mapper, connection, target):
        state = inspect(target)
        changed = {
            attr.key
            for attr in state.attrs
            if attr.key not in mutable_fields and attr.history.has_changes()
        }
        if changed:
            raise ConflictError(
                f"{model.__tablename__} is immutable (attempted change: {', '.join(sorted(changed))})"
            )

    @event.listens_for(model, "before_delete")
    def _reject_delete(mapper, connection, target):
        raise ConflictError(f"{model.__tablename__} records cannot be deleted")
