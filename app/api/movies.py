from fastapi import APIRouter, Depends

from app.api.deps import get_container
from app.core.container import AppContainer
from app.core.errors import APIError
from app.models.search import MovieResult

router = APIRouter(prefix="/v1", tags=["movies"])


@router.get("/movies/{movie_id}", response_model=MovieResult)
async def movie_details(movie_id: int, container: AppContainer = Depends(get_container)) -> MovieResult:
    if movie_id <= 0:
        # generated suggestions carry negative ids and have no catalogue page
        raise APIError("movie_not_in_catalogue", "Movie is not part of the catalogue", status_code=404)
    movie = await container.tmdb_client.fetch_movie_details(movie_id)
    return MovieResult.from_summary(movie, container.settings.tmdb_image_base_url, poster_size="w500")
