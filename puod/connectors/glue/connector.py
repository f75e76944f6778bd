"""Cloud pipeline connector for AWS Glue.

Queries name a Glue resource rather than SQL:

=====================  ============================================
``jobs``               job definitions
``jobRuns/<job>``      runs of one job (``jobRuns`` alone uses the
                       pipelines named in the data-source filter)
``crawlers``           crawler definitions with their last crawl
``crawlerRuns[/<c>]``  crawler metrics
``databases``          Data Catalog databases
``tables/<database>``  Data Catalog tables
``workflows``          workflows with their last run
``triggers``           triggers
``dataQuality``        data quality results
=====================  ============================================

Configuration keys: ``region`` (required), optional ``access_key_id`` /
``secret_access_key`` / ``session_token`` (the default credential chain is
used otherwise) and ``timeout_seconds``.
"""

from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig

from puod.config import HttpSettings
from puod.connectors.base import (
    Config,
    ConnectionResult,
    Connector,
    InvalidConfigurationError,
    Row,
    UnsupportedQueryError,
    get_data_source,
    get_int_config,
    require_keys,
)
from puod.connectors.registry import register_connector
from puod.logging import get_logger

logger = get_logger(__name__)

JOB_RUNS_PAGE_SIZE = 50
SUPPORTED_QUERIES = (
    "jobs, jobRuns/<jobName>, crawlers, crawlerRuns/<crawlerName>, "
    "databases, tables/<databaseName>, workflows, triggers, dataQuality"
)


@register_connector("glue")
class GlueConnector(Connector):
    """Jobs, crawlers, workflows and the Data Catalog of one AWS region."""

    name = "glue"

    def validate_config(self, config: Config) -> None:
        require_keys(config, ["region"], self.name)
        if config.get("access_key_id") and not config.get("secret_access_key"):
            raise InvalidConfigurationError(
                "missing required config: secret_access_key", self.name
            )

    def _test_connection(self, config: Config) -> ConnectionResult:
        response = self._client(config).get_databases(MaxResults=1)
        return ConnectionResult(
            success=True,
            metadata={
                "region": config["region"],
                "catalog_reachable": "DatabaseList" in response,
            },
        )

    def _execute_query(self, query: str, config: Config) -> List[Row]:
        handlers: List[tuple] = [
            (("jobruns", "job_runs"), self._job_runs),
            (("jobs", "job"), lambda _, c: self._jobs(c)),
            (("crawlerruns", "crawler_runs", "crawlermetrics"), self._crawler_runs),
            (("crawlers", "crawler"), lambda _, c: self._crawlers(c)),
            (("databases", "catalog"), lambda _, c: self._databases(c)),
            (("tables",), self._tables),
            (("workflows", "workflow"), lambda _, c: self._workflows(c)),
            (("triggers", "trigger"), lambda _, c: self._triggers(c)),
            (("dataquality", "data_quality"), lambda _, c: self._data_quality(c)),
        ]

        lowered = query.lower()
        for prefixes, handler in handlers:
            if lowered.startswith(prefixes):
                logger.debug(f"Glue query '{query}' handled as {prefixes[0]}")
                return handler(query, config)

        raise UnsupportedQueryError(
            f"'{query[:200]}'. Supported: {SUPPORTED_QUERIES}", self.name
        )

    def _list_databases(self, config: Config) -> List[str]:
        names = [row["name"] for row in self._databases(config) if row.get("name")]
        search = (config.get("search_pattern") or "").strip().lower()
        if search:
            names = [n for n in names if search in n.lower()]
        limit = get_int_config(config, "max_results", 0)
        return names[:limit] if limit > 0 else names

    def _list_tables(self, database: str, config: Config) -> List[str]:
        rows = self._tables(f"tables/{database}", config)
        return [row["name"] for row in rows if row.get("name")]

    def _jobs(self, config: Config) -> List[Row]:
        jobs = _paginate(self._client(config), "get_jobs", "Jobs")
        return [
            {
                "name": job.get("Name"),
                "pipeline_name": job.get("Name"),
                "role": job.get("Role"),
                "created_on": _iso(job.get("CreatedOn")),
                "last_modified_on": _iso(job.get("LastModifiedOn")),
                "glue_version": job.get("GlueVersion"),
                "worker_type": job.get("WorkerType"),
                "number_of_workers": job.get("NumberOfWorkers"),
                "max_retries": job.get("MaxRetries"),
                "timeout": job.get("Timeout"),
                "max_capacity": job.get("MaxCapacity"),
                "description": job.get("Description"),
                "command_name": (job.get("Command") or {}).get("Name"),
                "execution_class": job.get("ExecutionClass"),
            }
            for job in jobs
        ]

    def _job_runs(self, query: str, config: Config) -> List[Row]:
        job_name = _extract_parameter(query, ("jobRuns", "job_runs"))
        if job_name:
            job_names = [job_name]
        else:
            job_names = _pipeline_names(config)
        if not job_names:
            raise UnsupportedQueryError(
                "job runs query requires a job name. Format: 'jobRuns/<jobName>'",
                self.name,
            )

        client = self._client(config)
        rows: List[Row] = []
        for name in job_names:
            response = client.get_job_runs(JobName=name, MaxResults=JOB_RUNS_PAGE_SIZE)
            rows.extend(_job_run_row(run) for run in response.get("JobRuns", []))
        return rows

    def _crawlers(self, config: Config) -> List[Row]:
        rows = []
        for crawler in _paginate(self._client(config), "get_crawlers", "Crawlers"):
            row = {
                "name": crawler.get("Name"),
                "role": crawler.get("Role"),
                "database_name": crawler.get("DatabaseName"),
                "state": crawler.get("State"),
                "creation_time": _iso(crawler.get("CreationTime")),
                "last_updated": _iso(crawler.get("LastUpdated")),
                "description": crawler.get("Description"),
                "version": crawler.get("Version"),
            }
            last_crawl = crawler.get("LastCrawl")
            if last_crawl:
                row["last_crawl_status"] = last_crawl.get("Status")
                row["last_crawl_start_time"] = _iso(last_crawl.get("StartTime"))
                row["last_crawl_message"] = last_crawl.get("MessagePrefix")
                row["last_crawl_log_group"] = last_crawl.get("LogGroup")
            schedule = crawler.get("Schedule")
            if schedule:
                row["schedule_expression"] = schedule.get("ScheduleExpression")
                row["schedule_state"] = schedule.get("State")
            rows.append(row)
        return rows

    def _crawler_runs(self, query: str, config: Config) -> List[Row]:
        crawler_name = _extract_parameter(
            query, ("crawlerRuns", "crawler_runs", "crawlerMetrics")
        )
        kwargs: Dict[str, Any] = {"MaxResults": 50}
        if crawler_name:
            kwargs["CrawlerNameList"] = [crawler_name]

        response = self._client(config).get_crawler_metrics(**kwargs)
        return [
            {
                "crawler_name": m.get("CrawlerName"),
                "time_left_seconds": m.get("TimeLeftSeconds"),
                "still_estimating": bool(m.get("StillEstimating")),
                "last_runtime_seconds": m.get("LastRuntimeSeconds"),
                "median_runtime_seconds": m.get("MedianRuntimeSeconds"),
                "tables_created": m.get("TablesCreated"),
                "tables_updated": m.get("TablesUpdated"),
                "tables_deleted": m.get("TablesDeleted"),
            }
            for m in response.get("CrawlerMetricsList", [])
        ]

    def _databases(self, config: Config) -> List[Row]:
        return [
            {
                "name": db.get("Name"),
                "description": db.get("Description"),
                "location_uri": db.get("LocationUri"),
                "create_time": _iso(db.get("CreateTime")),
                "catalog_id": db.get("CatalogId"),
            }
            for db in _paginate(self._client(config), "get_databases", "DatabaseList")
        ]

    def _tables(self, query: str, config: Config) -> List[Row]:
        database = _extract_parameter(query, ("tables",))
        if not database:
            raise UnsupportedQueryError(
                "tables query requires a database name. Format: 'tables/<databaseName>'",
                self.name,
            )

        rows = []
        tables = _paginate(
            self._client(config), "get_tables", "TableList", DatabaseName=database
        )
        for table in tables:
            row = {
                "name": table.get("Name"),
                "database_name": table.get("DatabaseName"),
                "table_type": table.get("TableType"),
                "create_time": _iso(table.get("CreateTime")),
                "update_time": _iso(table.get("UpdateTime")),
                "description": table.get("Description"),
                "owner": table.get("Owner"),
                "retention": table.get("Retention"),
                "is_registered_with_lake_formation": bool(
                    table.get("IsRegisteredWithLakeFormation")
                ),
            }
            storage = table.get("StorageDescriptor")
            if storage:
                row["location"] = storage.get("Location")
                row["input_format"] = storage.get("InputFormat")
                row["output_format"] = storage.get("OutputFormat")
                row["compressed"] = bool(storage.get("Compressed"))
                row["column_count"] = len(storage.get("Columns") or [])
                row["serialization_library"] = (storage.get("SerdeInfo") or {}).get(
                    "SerializationLibrary"
                )
            if "PartitionKeys" in table:
                row["partition_key_count"] = len(table["PartitionKeys"])
            rows.append(row)
        return rows

    def _workflows(self, config: Config) -> List[Row]:
        client = self._client(config)
        rows = []
        for name in client.list_workflows(MaxResults=25).get("Workflows", []):
            workflow = client.get_workflow(Name=name).get("Workflow") or {}
            row = {
                "name": workflow.get("Name", name),
                "pipeline_name": workflow.get("Name", name),
                "description": workflow.get("Description"),
                "created_on": _iso(workflow.get("CreatedOn")),
                "last_modified_on": _iso(workflow.get("LastModifiedOn")),
            }
            last_run = workflow.get("LastRun")
            if last_run:
                row["status"] = last_run.get("Status")
                row["last_run_status"] = last_run.get("Status")
                row["last_run_started_on"] = _iso(last_run.get("StartedOn"))
                row["last_run_completed_on"] = _iso(last_run.get("CompletedOn"))
                row["last_run_error_message"] = last_run.get("ErrorMessage")
                stats = last_run.get("Statistics") or {}
                row["total_actions"] = stats.get("TotalActions")
                row["succeeded_actions"] = stats.get("SucceededActions")
                row["failed_actions"] = stats.get("FailedActions")
                row["running_actions"] = stats.get("RunningActions")
            rows.append(row)
        return rows

    def _triggers(self, config: Config) -> List[Row]:
        return [
            {
                "name": trigger.get("Name"),
                "type": trigger.get("Type"),
                "state": trigger.get("State"),
                "description": trigger.get("Description"),
                "schedule": trigger.get("Schedule"),
                "workflow_name": trigger.get("WorkflowName"),
                "actions": ", ".join(
                    action.get("JobName") or action.get("CrawlerName") or ""
                    for action in trigger.get("Actions") or []
                ),
            }
            for trigger in _paginate(self._client(config), "get_triggers", "Triggers")
        ]

    def _data_quality(self, config: Config) -> List[Row]:
        response = self._client(config).list_data_quality_results(MaxResults=50)
        return [
            {
                "result_id": result.get("ResultId"),
                "score": result.get("Score"),
                "started_on": _iso(result.get("StartedOn")),
                "completed_on": _iso(result.get("CompletedOn")),
                "job_name": result.get("JobName"),
                "job_run_id": result.get("JobRunId"),
                "ruleset_name": result.get("RulesetName"),
            }
            for result in response.get("Results", [])
        ]

    def _client(self, config: Config):
        settings = self.http_settings or HttpSettings()
        timeout = get_int_config(config, "timeout_seconds", int(settings.timeout))
        session_kwargs = {"region_name": config["region"]}
        if config.get("access_key_id"):
            session_kwargs["aws_access_key_id"] = config["access_key_id"]
            session_kwargs["aws_secret_access_key"] = config["secret_access_key"]
            if config.get("session_token"):
                session_kwargs["aws_session_token"] = config["session_token"]

        session = boto3.Session(**session_kwargs)
        return session.client(
            "glue",
            config=BotoConfig(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": settings.max_retries, "mode": "standard"},
            ),
        )


def _job_run_row(run: Dict[str, Any]) -> Row:
    return {
        "id": run.get("Id"),
        "job_name": run.get("JobName"),
        "pipeline_name": run.get("JobName"),
        "status": run.get("JobRunState"),
        "job_run_state": run.get("JobRunState"),
        "started_on": _iso(run.get("StartedOn")),
        "completed_on": _iso(run.get("CompletedOn")),
        "execution_time": run.get("ExecutionTime"),
        "timeout": run.get("Timeout"),
        "max_capacity": run.get("MaxCapacity"),
        "worker_type": run.get("WorkerType"),
        "number_of_workers": run.get("NumberOfWorkers"),
        "glue_version": run.get("GlueVersion"),
        "error_message": run.get("ErrorMessage"),
        "attempt": run.get("Attempt"),
        "trigger_name": run.get("TriggerName"),
        "dpu_seconds": run.get("DPUSeconds"),
        "execution_class": run.get("ExecutionClass"),
        "log_group_name": run.get("LogGroupName"),
    }


def _paginate(client, operation: str, result_key: str, **kwargs) -> List[Any]:
    items: List[Any] = []
    for page in client.get_paginator(operation).paginate(**kwargs):
        items.extend(page.get(result_key, []))
    return items


def _extract_parameter(query: str, prefixes) -> Optional[str]:
    """``jobRuns/etl`` -> ``etl``; None when only the prefix is given."""
    for prefix in prefixes:
        if query.lower().startswith(prefix.lower()):
            remainder = query[len(prefix):].strip().lstrip("/").strip()
            return remainder or None
    return None


def _pipeline_names(config: Config) -> List[str]:
    names = get_data_source(config).get("namedResourceIds") or []
    return [str(n).strip() for n in names if str(n).strip()]


def _iso(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value
