"""
Upload client: chunk planning, progress aggregation and parallel part uploads.

File bytes go from this client straight to storage through presigned URLs;
the API only hands out URLs and finalizes sessions.
"""
from presigned_storage.client.api import UploadApiClient
from presigned_storage.client.chunking import DEFAULT_CHUNK_SIZE, ChunkRange, count_chunks, plan_chunks
from presigned_storage.client.coordinator import ParallelUploadCoordinator, UploadResult
from presigned_storage.client.progress import ProgressAggregator

__all__ = [
    "UploadApiClient",
    "DEFAULT_CHUNK_SIZE",
    "ChunkRange",
    "count_chunks",
    "plan_chunks",
    "ParallelUploadCoordinator",
    "UploadResult",
    "ProgressAggregator",
]
