# cli.py
import json
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import click
import httpx

from config import get_settings
from logging_config import configure_logging

SAMPLE_JOBS = [
    {"jobName": "data-processor-1", "arguments": ["input.csv", "output.json"]},
    {"jobName": "test-batch-job", "arguments": ["--verbose", "--debug", "--output=/tmp"]},
    {"jobName": "short", "arguments": []},
    {"jobName": "very-long-job-name-with-many-characters", "arguments": ["arg1"]},
    {"jobName": "process42", "arguments": ["data1", "data2"]},
    {"jobName": "test-validation", "arguments": ["--strict"]},
    {"jobName": "x-factor", "arguments": ["input"]},
    {"jobName": "background-task", "arguments": ["--async", "--timeout=30", "--retry=3"]},
]


def _base_url(base_url):
    if base_url:
        return base_url.rstrip("/")
    return f"http://localhost:{get_settings().port}"


def _echo_job(job):
    dur = f"{job['duration'] / 1000:.3f}s" if job.get("duration") is not None else "-"
    args = " ".join(job.get("arguments") or []) or "-"
    line = f"{job['id']} | {job['name']} | args={args} | status={job['status']} | retry={job['retryCount']} | duration={dur}"
    if job.get("originalJobId"):
        line += f" | retry_of={job['originalJobId']}"
    click.echo(line)


def _echo_stats(stats):
    click.echo("📈 Job Statistics")
    click.echo(f"  Total jobs: {stats['totalJobs']}")
    click.echo(f"  Overall success rate: {stats['overallSuccessRate']:.2f}")
    if not stats["patterns"]:
        click.echo("  No patterns matched.")
    for p in stats["patterns"]:
        click.echo(f"  {p['pattern']}: matches={p['matchCount']} success={p['successRate']:.2f} ({p['differenceFromAverage']})")


@click.group()
def cli():
    """simjobs - launch simulator jobs and inspect their outcomes"""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)


# ---------------- Server ----------------
@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST setting)")
@click.option("--port", default=None, type=int, help="Port (defaults to PORT setting)")
def serve(host, port):
    """Run the HTTP API"""
    import uvicorn
    from api import create_app

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    click.echo(f"🚀 Job Manager Service running on port {port}")
    click.echo("Available endpoints:")
    for endpoint in ("POST /jobs", "GET  /jobs", "GET  /stats", "GET  /health"):
        method, path = endpoint.split(None, 1)
        click.echo(f"  {method:<5}http://localhost:{port}{path}")
    uvicorn.run(create_app(), host=host, port=port, log_level=settings.log_level.lower())


# ---------------- Direct execution ----------------
@cli.command()
def platform():
    """Show the detected platform and simulator command"""
    from simulator import resolve_simulator_command

    settings = get_settings()
    simulator = resolve_simulator_command(
        sys.platform, settings.simulator_command, settings.simulator_args, root=settings.workdir
    )
    click.echo(f"Platform detected: {sys.platform}")
    click.echo(f"Simulator config: {json.dumps(simulator.to_dict())}")


@cli.command()
@click.argument("job_name")
@click.argument("arguments", nargs=-1)
@click.option("--timeout", default=30.0, type=float, help="Seconds to wait for the job (and its retry) to finish")
def run(job_name, arguments, timeout):
    """Run one job in-process and report the outcome"""
    from worker import JobManager

    manager = JobManager()
    click.echo(f"Platform detected: {manager.platform}")
    click.echo(f"Simulator config: {json.dumps(manager.simulator_command.to_dict())}")

    job_id = manager.start_job(job_name, list(arguments))
    click.echo(f"✓ Job started: {job_id}")

    if not manager.simulator_command.is_available:
        click.echo(f"✗ Simulator script not found: {manager.simulator_command.script_path} (set WORKDIR to a checkout)")

    if not manager.wait(job_id, timeout=timeout):
        click.echo(f"✗ Job {job_id} still active after {timeout}s")

    jobs = manager.get_all_jobs()
    click.echo(f"✓ Jobs retrieved: {len(jobs)}")
    for job in manager.lineage(job_id):
        dur = f"{job.duration}ms" if job.duration is not None else "-"
        click.echo(f"  - {job.name}: {job.status} ({dur}, exit_code={job.exit_code if job.exit_code is not None else '-'})")
        if job.error:
            click.echo(f"    error: {job.error}")

    stats = manager.get_job_stats()
    click.echo(f"✓ Stats generated: {stats.total_jobs} jobs, {stats.overall_success_rate} success rate")


# ---------------- HTTP client ----------------
@cli.command(name="list")
@click.option("--base-url", default=None, help="Server URL (defaults to http://localhost:$PORT)")
@click.option("--status", default=None, help="Filter by status (running, completed, failed, crashed, retrying)")
def list_jobs(base_url, status):
    """List jobs known to a running server"""
    try:
        data = httpx.get(f"{_base_url(base_url)}/jobs").raise_for_status().json()
    except httpx.HTTPError as e:
        raise click.ClickException(f"Failed to fetch jobs: {e}")

    jobs = [j for j in data["jobs"] if status is None or j["status"] == status]
    if not jobs:
        click.echo("No jobs found.")
        return
    for job in jobs:
        _echo_job(job)


@cli.command()
@click.option("--base-url", default=None, help="Server URL (defaults to http://localhost:$PORT)")
def stats(base_url):
    """Show success statistics from a running server"""
    try:
        data = httpx.get(f"{_base_url(base_url)}/stats").raise_for_status().json()
    except httpx.HTTPError as e:
        raise click.ClickException(f"Failed to fetch stats: {e}")
    _echo_stats(data)


@cli.command()
@click.option("--base-url", default=None, help="Server URL (defaults to http://localhost:$PORT)")
@click.option("--wait", "wait_seconds", default=8.0, type=float, help="Seconds to wait before collecting results")
def smoke(base_url, wait_seconds):
    """Submit the sample jobs concurrently and print the results"""
    url = _base_url(base_url)
    click.echo("Testing Job Manager Service...\n")
    click.echo("Starting multiple concurrent jobs...")

    def submit(indexed):
        index, job = indexed
        try:
            response = httpx.post(f"{url}/jobs", json=job).raise_for_status()
            click.echo(f"Job {index + 1} started: {response.json()['jobId']}")
            return response.json()
        except httpx.HTTPError as e:
            click.echo(f"Failed to start job {index + 1}: {e}", err=True)
            return None

    with ThreadPoolExecutor(max_workers=len(SAMPLE_JOBS)) as pool:
        results = list(pool.map(submit, enumerate(SAMPLE_JOBS)))

    started = sum(1 for r in results if r)
    click.echo(f"\n{started}/{len(SAMPLE_JOBS)} jobs started. Waiting for completion...\n")
    time.sleep(wait_seconds)

    try:
        jobs = httpx.get(f"{url}/jobs").raise_for_status().json()
        job_stats = httpx.get(f"{url}/stats").raise_for_status().json()
    except httpx.HTTPError as e:
        raise click.ClickException(f"Test failed: {e}")

    click.echo("Current jobs:")
    click.echo(json.dumps(jobs, indent=2))
    click.echo("\nJob Statistics:")
    click.echo(json.dumps(job_stats, indent=2))


# ---------------- Config ----------------
@cli.command()
def config():
    """Show the effective configuration"""
    settings = get_settings()
    for key, value in sorted(settings.model_dump().items()):
        click.echo(f"{key}={value}")


# ---------------- Entrypoint ----------------
if __name__ == "__main__":
    cli()
