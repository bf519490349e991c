TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"

POSTER_SIZES = ("w92", "w154", "w185", "w342", "w500", "w780", "original")
DEFAULT_POSTER_SIZE = "w500"

SEARCH_RESULT_FIELDS = ("id", "title", "poster_path", "release_date", "overview")
