"""
SQL Interrogator API
====================

HTTP surface over the schema snapshot and the statement engine:

- /database/*      reflect a database (SQLAlchemy) and inspect the snapshot
- /join-path       explain how two tables are connected
- /sql/select      generate a SELECT with the joins it needs
- /sql/parameters  turn raw strings back into typed WHERE parameters

One snapshot is active at a time. It is loaded at startup from DATABASE_URL
(if set) and replaced by POST /database/connect.
"""

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
import math
import os
from dotenv import load_dotenv
import logging
from contextlib import asynccontextmanager

from schema_model import DatabaseInfo
from schema_loader import SchemaCollector
from join_path_inference import describe_join_path
from sql_generator import (
    QueryParameter,
    ColumnNotFoundError,
    TableNotFoundError,
    JoinPathNotFoundError,
    generate_select_statement,
)
from parameter_inference import generate_parameters, describe_parameters

load_dotenv()

# Configuration
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
DATABASE_SCHEMA = os.getenv("DATABASE_SCHEMA")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
VERSION = "1.0"

logging.basicConfig(
    level=logging.WARNING,  # keep library output quiet
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)
for _module in ("schema_loader", "join_path_inference", "sql_generator", "parameter_inference", __name__):
    logging.getLogger(_module).setLevel(LOG_LEVEL)

# Active snapshot
database_info: Optional[DatabaseInfo] = None


def load_snapshot(database_url: str, database_name: Optional[str] = None,
                  schema: Optional[str] = None) -> DatabaseInfo:
    collector = SchemaCollector(database_url)
    try:
        collector.test_connection()
        return collector.load_database(database_name=database_name, schema=schema)
    finally:
        collector.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the startup snapshot if DATABASE_URL is configured"""
    global database_info

    logger.info(f"Initializing SQL Interrogator v{VERSION}...")
    if DATABASE_URL:
        try:
            database_info = load_snapshot(DATABASE_URL, DATABASE_NAME, DATABASE_SCHEMA)
            logger.info(f"✓ Schema snapshot loaded: {len(database_info.tables)} tables")
        except Exception as e:
            logger.error(f"Startup schema load failed: {str(e)}")
            raise
    else:
        logger.info("DATABASE_URL not set - waiting for POST /database/connect")

    yield

    logger.info("Shutting down SQL Interrogator...")


app = FastAPI(
    title="SQL Interrogator API",
    description="Foreign-key aware SELECT generation and parameter inference",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic Models
class DatabaseConnectionRequest(BaseModel):
    database_url: str
    database_name: Optional[str] = None
    schema_name: Optional[str] = None


class ColumnReference(BaseModel):
    table: str
    column: str


class ParameterValue(BaseModel):
    table: str
    column: str
    value: Any = None


class SelectRequest(BaseModel):
    columns: List[ColumnReference]
    parameters: Optional[List[ParameterValue]] = None


class SelectResponse(BaseModel):
    sql: str
    tables: List[str]


class ParametersRequest(BaseModel):
    sql: str
    values: Dict[str, str]


def require_database() -> DatabaseInfo:
    if database_info is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return database_info


@app.get("/")
async def root():
    return {
        "message": f"SQL Interrogator API v{VERSION}",
        "version": VERSION,
        "features": [
            "Schema reflection via SQLAlchemy",
            "Shortest foreign-key join paths",
            "SELECT generation with LEFT JOINs and WHERE literals",
            "Typed parameter inference from raw strings",
        ],
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    if database_info is None:
        return {"status": "unhealthy", "error": "Database not initialized"}
    return {
        "status": "healthy",
        "version": VERSION,
        "database": database_info.name,
        "database_tables": len(database_info.tables),
    }


@app.get("/database/schema")
async def get_database_schema():
    """Get current schema snapshot"""
    database = require_database()
    return {"success": True, "schema": database.summary()}


@app.post("/database/connect")
async def connect_to_database(request: DatabaseConnectionRequest):
    """Reflect a new database and make it the active snapshot"""
    global database_info

    try:
        logger.info("Attempting to connect to new database...")
        snapshot = load_snapshot(request.database_url, request.database_name, request.schema_name)
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        return {"success": False, "error": str(e)}

    database_info = snapshot
    logger.info(f"✓ Connected to {snapshot.name}: {len(snapshot.tables)} tables")
    return {
        "success": True,
        "message": "Successfully connected to database",
        "database": snapshot.name,
        "table_count": len(snapshot.tables),
    }


@app.get("/join-path")
async def get_join_path(source: str = Query(...), target: str = Query(...)):
    """Explain the shortest foreign-key path between two tables"""
    database = require_database()

    source_table = database.find_table(source)
    target_table = database.find_table(target)
    for name, table in ((source, source_table), (target, target_table)):
        if table is None:
            raise HTTPException(status_code=404, detail=f"Table not found: {name}")

    join_path = database.join_graph().find_join_path(source_table, target_table)
    if join_path is None:
        raise HTTPException(
            status_code=404,
            detail=f"No join path found between tables {source_table.name} and {target_table.name}",
        )

    return {
        "tables": [table.name for table in join_path.tables],
        "hops": join_path.hop_count,
        "keys": [
            {
                "name": step.join_key.name,
                "column": step.join_key.source_column_name,
                "references": f"{step.join_key.referenced_table_name}.{step.join_key.referenced_column_name}",
            }
            for step in join_path.steps[1:]
        ],
        "description": describe_join_path(join_path),
    }


@app.post("/sql/select", response_model=SelectResponse)
async def generate_select(request: SelectRequest):
    """Generate a SELECT statement for the requested columns"""
    database = require_database()

    columns = []
    for ref in request.columns:
        table = database.find_table(ref.table)
        if table is None:
            raise HTTPException(status_code=404, detail=f"Table not found: {ref.table}")
        column = table.find_column(ref.column)
        if column is None:
            raise HTTPException(status_code=404, detail=f"Column not found: {ref.table}.{ref.column}")
        columns.append(column)

    parameters = [
        QueryParameter(p.table, p.column, p.value) for p in (request.parameters or [])
    ]

    try:
        sql = generate_select_statement(columns, database, parameters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (TableNotFoundError, ColumnNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except JoinPathNotFoundError as e:
        raise HTTPException(status_code=422, detail=str(e))

    tables = []
    for column in columns:
        name = database.get_table(column.table_id).name
        if name not in tables:
            tables.append(name)

    return SelectResponse(sql=sql, tables=tables)


@app.post("/sql/parameters")
async def infer_parameters(request: ParametersRequest):
    """Infer typed WHERE parameters from raw string values"""
    try:
        parameters = generate_parameters(request.sql, request.values)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "parameters": {name: json_safe(value) for name, value in parameters.items()},
        "types": describe_parameters(request.values) if parameters else {},
    }


def json_safe(value: Any) -> Any:
    """NaN and the infinities have no JSON form; send them as their names."""
    if isinstance(value, float) and not math.isfinite(value):
        if math.isnan(value):
            return "NaN"
        return "Infinity" if value > 0 else "-Infinity"
    return value


if __name__ == "__main__":
    import uvicorn
    from env_guard import validate_environment

    validate_environment(strict=True)
    uvicorn.run(app, host=HOST, port=PORT)
