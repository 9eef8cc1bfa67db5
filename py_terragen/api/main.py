"""FastAPI main application."""

import threading
import time
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional, Tuple

import structlog
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..config import settings
from ..core.alea_prng import AleaPRNG
from ..core.elevation import ElevationOptions
from ..core.mesh_emitter import generate_dual, generate_regular, generate_tiles
from ..core.pipeline import GenerationOptions, GenerationResult, generate_planet
from ..logging_config import configure_logging

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Terragen API",
    description="Procedural icosphere planets with tectonic plates",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class PlanetGenerationRequest(BaseModel):
    """Request to generate a new planet."""

    seed: Optional[str] = Field(None, description="Random seed for reproducible generation")
    level: int = Field(settings.default_level, ge=0, le=settings.max_subdivision_level,
                       description="Subdivision level")
    distort_iterations: int = Field(6, ge=0, le=50, description="Rounds of distortion and relaxation")
    distort_fraction: float = Field(0.05, ge=0.0, le=0.5, description="Share of edges rotated in the first round")
    relax_multiplier: float = Field(0.5, gt=0.0, le=1.0, description="Relaxation step multiplier")
    max_relax_iterations: int = Field(300, ge=0, le=2000, description="Relaxation pass cap")
    plate_count: int = Field(settings.plate_count, ge=1, le=200, description="Plates to seed")
    merge_plates: bool = Field(True, description="Merge undersized plates into neighbours")
    name: Optional[str] = Field(None, description="Custom planet name")


class JobResponse(BaseModel):
    """Response with job information."""

    job_id: str
    status: str
    progress_percent: int
    message: str
    planet_id: Optional[str] = None
    error_message: Optional[str] = None


class PlanetSummary(BaseModel):
    """Summary information about a generated planet."""

    id: str
    name: str
    seed: str
    level: int
    nodes: int
    edges: int
    faces: int
    tiles: int
    borders: int
    plates: int
    elevation_range: Tuple[float, float]
    distortion_complete: bool
    relax_passes: int
    created_at: datetime
    generation_time_seconds: float


class PlateInfo(BaseModel):
    """Information about a tectonic plate."""

    id: int
    tile_count: int
    border_count: int
    base_elevation: float
    axis_of_rotation: Tuple[float, float, float]
    angular_velocity: float


class MeshResponse(BaseModel):
    """Flattened render buffers."""

    kind: str
    vertices: List[List[float]]
    faces: List[List[int]]
    normals: Optional[List[List[float]]] = None
    texcoords: Optional[List[List[float]]] = None
    wireframe: Optional[List[List[int]]] = None


class Job:
    """State of one background generation."""

    def __init__(self, job_id: str, request: PlanetGenerationRequest, seed: str):
        self.id = job_id
        self.request = request
        self.seed = seed
        self.status = "pending"
        self.progress_percent = 0
        self.planet_id: Optional[str] = None
        self.error_message: Optional[str] = None
        self.created_at = datetime.utcnow()

    def to_response(self, message: Optional[str] = None) -> JobResponse:
        return JobResponse(
            job_id=self.id,
            status=self.status,
            progress_percent=self.progress_percent,
            message=message or f"Job {self.status}",
            planet_id=self.planet_id,
            error_message=self.error_message,
        )


class StoredPlanet:
    def __init__(self, planet_id: str, name: str, seed: str, result: GenerationResult):
        self.id = planet_id
        self.name = name
        self.seed = seed
        self.result = result
        self.created_at = datetime.utcnow()


class Registry:
    """
    In-memory jobs and finished planets.

    A generation task owns its mesh and planet until it hands the finished
    result over here; stored planets are only read afterwards.
    """

    def __init__(self, max_planets: int, max_jobs: int):
        self.max_planets = max_planets
        self.max_jobs = max_jobs
        self.jobs: "OrderedDict[str, Job]" = OrderedDict()
        self.planets: "OrderedDict[str, StoredPlanet]" = OrderedDict()
        self._lock = threading.Lock()

    def add_job(self, job: Job) -> None:
        with self._lock:
            self.jobs[job.id] = job
            while len(self.jobs) > self.max_jobs:
                self.jobs.popitem(last=False)

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self.jobs.get(job_id)

    def add_planet(self, stored: StoredPlanet) -> None:
        with self._lock:
            self.planets[stored.id] = stored
            while len(self.planets) > self.max_planets:
                evicted, _ = self.planets.popitem(last=False)
                logger.info("Planet evicted", planet_id=evicted)

    def get_planet(self, planet_id: str) -> Optional[StoredPlanet]:
        with self._lock:
            return self.planets.get(planet_id)

    def list_planets(self) -> List[StoredPlanet]:
        with self._lock:
            return list(self.planets.values())

    def clear(self) -> None:
        with self._lock:
            self.jobs.clear()
            self.planets.clear()


registry = Registry(settings.max_stored_planets, settings.max_jobs)


def _require_planet(planet_id: str) -> StoredPlanet:
    stored = registry.get_planet(planet_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Planet not found")
    return stored


def _summary(stored: StoredPlanet) -> PlanetSummary:
    mesh = stored.result.mesh
    planet = stored.result.planet
    min_elevation, elevation_range = planet.get_elevation_scale()
    return PlanetSummary(
        id=stored.id,
        name=stored.name,
        seed=stored.seed,
        level=mesh.current_level(),
        nodes=mesh.num_nodes(),
        edges=mesh.num_edges(),
        faces=mesh.num_faces(),
        tiles=planet.num_tiles,
        borders=len(planet.borders),
        plates=planet.num_plates,
        elevation_range=(min_elevation, min_elevation + elevation_range),
        distortion_complete=stored.result.distortion_complete,
        relax_passes=len(stored.result.relax_history),
        created_at=stored.created_at,
        generation_time_seconds=stored.result.timings.get("total", 0.0),
    )


# Event handlers
@app.on_event("startup")
async def startup_event():
    """Configure logging on startup."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting Terragen API")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Terragen API")


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Terragen API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "jobs": len(registry.jobs),
        "planets": len(registry.planets),
    }


@app.post("/planets/generate", response_model=JobResponse)
async def generate(request: PlanetGenerationRequest, background_tasks: BackgroundTasks):
    """
    Start planet generation job.

    Returns immediately with job ID. Use /jobs/{job_id} to check status.
    """
    logger.info("Planet generation requested", request=request.model_dump())

    job_id = str(uuid.uuid4())
    seed = request.seed or settings.default_seed
    job = Job(job_id, request, seed)
    registry.add_job(job)

    background_tasks.add_task(run_planet_generation, job_id)

    return job.to_response("Planet generation job started")


@app.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job_status(job_id: str):
    """Get status of a planet generation job."""
    job = registry.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_response()


# Handlers that summarize or flatten a planet are plain functions so FastAPI
# runs them in its threadpool instead of on the event loop.
@app.get("/planets", response_model=List[PlanetSummary])
def list_planets():
    """List all planets kept in memory, oldest first."""
    return [_summary(stored) for stored in registry.list_planets()]


@app.get("/planets/{planet_id}", response_model=PlanetSummary)
def get_planet(planet_id: str):
    """Get planet details."""
    return _summary(_require_planet(planet_id))


@app.get("/planets/{planet_id}/plates", response_model=List[PlateInfo])
def get_planet_plates(planet_id: str):
    """Get the tectonic plates of a planet."""
    planet = _require_planet(planet_id).result.planet
    return [
        PlateInfo(
            id=plate.id,
            tile_count=len(plate.tiles),
            border_count=len(plate.borders),
            base_elevation=plate.base_elevation,
            axis_of_rotation=tuple(float(c) for c in plate.axis_of_rotation),
            angular_velocity=plate.angular_velocity,
        )
        for plate in planet.plates
    ]


@app.get("/planets/{planet_id}/mesh", response_model=MeshResponse)
def get_planet_mesh(
    planet_id: str,
    kind: str = Query("tiles", pattern="^(tiles|dual|regular)$"),
    wireframe: bool = False,
):
    """Flattened render buffers of the tile, dual or primal mesh."""
    result = _require_planet(planet_id).result
    if kind == "tiles":
        buffers = generate_tiles(result.planet, wireframe)
    elif kind == "dual":
        buffers = generate_dual(result.mesh, wireframe)
    else:
        buffers = generate_regular(result.mesh, wireframe)
    return MeshResponse(kind=kind, **buffers.to_dict())


# Background task functions
def run_planet_generation(job_id: str) -> None:
    """
    Background task to generate a planet.
    """
    job = registry.get_job(job_id)
    if job is None:
        logger.error("Unknown generation job", job_id=job_id)
        return

    logger.info("Starting planet generation", job_id=job_id)
    job.status = "running"
    request = job.request

    def on_progress(percent: int, stage: str) -> None:
        job.progress_percent = percent
        logger.debug("Generation progress", job_id=job_id, stage=stage, percent=percent)

    try:
        options = GenerationOptions(
            level=request.level,
            max_level=settings.max_subdivision_level,
            distort_iterations=request.distort_iterations,
            distort_fraction=request.distort_fraction,
            relax_multiplier=request.relax_multiplier,
            max_relax_iterations=request.max_relax_iterations,
            plate_count=request.plate_count,
            merge_plates=request.merge_plates,
            min_plate_fraction=settings.min_plate_fraction,
            seed_attempts=settings.seed_attempts,
            elevation=ElevationOptions(scale=settings.noise_scale),
        )
        started = time.perf_counter()
        result = generate_planet(options, prng=AleaPRNG(job.seed), progress=on_progress)

        planet_id = str(uuid.uuid4())
        registry.add_planet(
            StoredPlanet(planet_id, request.name or f"Planet {job.seed}", job.seed, result)
        )
        job.planet_id = planet_id
        job.status = "completed"
        job.progress_percent = 100
        logger.info(
            "Planet generation completed",
            job_id=job_id,
            planet_id=planet_id,
            seconds=round(time.perf_counter() - started, 3),
        )

    except Exception as e:
        logger.error("Planet generation failed", job_id=job_id, error=str(e))
        job.status = "failed"
        job.error_message = str(e)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
