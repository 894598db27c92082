"""HTTP surface over the proof service and rebuild orchestrator."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tokenproof.errors import (
    InvalidLeafInputError,
    LeafNotFoundError,
    RebuildInProgressError,
    TreesNotReadyError,
    UnknownPartitionError,
)
from tokenproof.rebuild.status import RebuildState
from tokenproof.runtime import Runtime

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(runtime: Runtime) -> FastAPI:
    """Build the FastAPI app for an already-bootstrapped runtime."""
    app = FastAPI(title="tokenproof", version="v1")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime.config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    proofs = runtime.proofs
    orchestrator = runtime.orchestrator

    # -- error mapping -----------------------------------------------------

    @app.exception_handler(UnknownPartitionError)
    async def _unknown_chain(request: Request, exc: UnknownPartitionError):
        return _error(400, str(exc))

    @app.exception_handler(InvalidLeafInputError)
    async def _bad_input(request: Request, exc: InvalidLeafInputError):
        return _error(400, str(exc))

    @app.exception_handler(LeafNotFoundError)
    async def _leaf_missing(request: Request, exc: LeafNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(TreesNotReadyError)
    async def _not_ready(request: Request, exc: TreesNotReadyError):
        return _error(503, str(exc))

    @app.exception_handler(RebuildInProgressError)
    async def _busy(request: Request, exc: RebuildInProgressError):
        return _error(409, str(exc))

    # -- routes --------------------------------------------------------------

    @app.get("/")
    def health():
        return {"status": "OK", "message": "Server is healthy"}

    @app.get("/proof/{chain}/{citizen_id}/{token}")
    def get_proof(chain: str, citizen_id: str, token: str):
        result = proofs.get_proof(chain, citizen_id, token)
        return {
            "chain": result.chain.value,
            "leaf": result.leaf,
            "proof": result.proof,
            "root": result.root,
        }

    @app.get("/rootHash/{chain}")
    def get_root(chain: str):
        return {"rootHash": proofs.get_root(chain)}

    @app.get("/root-hashes")
    def root_hashes():
        return {"rootHashes": proofs.root_hashes()}

    @app.post("/regenerate-trees", status_code=202)
    def regenerate_trees():
        logger.info("Starting Merkle tree regeneration...")
        status = orchestrator.start_rebuild()
        return {"message": "Merkle tree regeneration initiated", "generation": status.generation}

    @app.get("/regeneration-status")
    def regeneration_status():
        status = orchestrator.status()
        is_complete = status.is_complete or (
            status.state == RebuildState.idle and proofs.generation() is not None
        )
        return {
            "isComplete": is_complete,
            "state": status.state.value,
            "overall": status.overall,
            "currentChain": status.current_chain.value if status.current_chain else "",
            "chainsCompleted": status.chains_completed,
            "chainProgress": {c.value: pct for c, pct in status.chain_progress.items()},
            "error": status.error,
            "generation": status.generation,
            "servingGeneration": proofs.generation(),
        }

    return app
