"""
Shared fixtures: synthetic records shaped like the TMDB box-office CSV.
"""

import numpy as np
import pandas as pd
import pytest

GENRE_POOL = [
    (28, 'Action'), (12, 'Adventure'), (35, 'Comedy'), (18, 'Drama'),
    (27, 'Horror'), (10749, 'Romance'), (878, 'Science Fiction'), (53, 'Thriller'),
]
COMPANY_POOL = [f"Studio {c}" for c in "ABCDEFGHIJKLMNOPQRSTUVWXY"]
HOMEPAGES = [
    "http://movies.disney.com/film", "http://www.warnerbros.com/film",
    "http://www.sonyclassics.com/film", "http://www.example.org/film",
]
JOBS = ['Director', 'Producer', 'Executive Producer', 'Editor', 'Screenplay']


def _entries(items):
    return "[" + ", ".join(items) + "]"


def make_movies(n=200, seed=0):
    """Build n synthetic records with the raw column layout and quirks."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n):
        k_genres = rng.integers(1, 4)
        genres = [GENRE_POOL[j] for j in rng.choice(len(GENRE_POOL), k_genres, replace=False)]
        k_comp = rng.integers(0, 4)
        companies = [COMPANY_POOL[j] for j in rng.choice(len(COMPANY_POOL), k_comp, replace=False)]
        cast = [
            f"{{'cast_id': {c}, 'character': 'Role {c}', 'gender': {rng.integers(0, 3)}, "
            f"'id': {1000 + c}, 'name': 'Actor {c}', 'order': {c}}}"
            for c in range(rng.integers(0, 15))
        ]
        crew = [
            f"{{'credit_id': 'x{c}', 'department': 'Dept', 'gender': {rng.integers(0, 3)}, "
            f"'id': {2000 + c}, 'job': '{JOBS[c % len(JOBS)]}', 'name': 'Crew {c}'}}"
            for c in range(rng.integers(1, 12))
        ]
        year = int(rng.choice(list(range(70, 100)) + list(range(0, 17))))
        budget = float(rng.choice([0, 500, 1000])) if rng.random() < 0.3 else float(rng.integers(1_000_000, 150_000_000))

        rows.append({
            'id': i + 1,
            'belongs_to_collection': (
                f"[{{'id': {i}, 'name': 'Saga {i} Collection', 'poster_path': '/c.jpg'}}]"
                if rng.random() < 0.2 else np.nan
            ),
            'budget': budget,
            'genres': _entries(f"{{'id': {gid}, 'name': '{name}'}}" for gid, name in genres),
            'homepage': HOMEPAGES[rng.integers(0, len(HOMEPAGES))] if rng.random() < 0.4 else np.nan,
            'imdb_id': f"tt{i:07d}",
            'original_language': rng.choice(['en', 'en', 'en', 'fr', 'hi', 'ja']),
            'original_title': f"Movie {i}",
            'overview': f"A story about thing {i}." if rng.random() < 0.95 else np.nan,
            'popularity': float(rng.gamma(2.0, 4.0)),
            'poster_path': f"/poster{i}.jpg",
            'production_companies': (
                _entries(f"{{'name': '{name}', 'id': {j}}}" for j, name in enumerate(companies))
                if companies else np.nan
            ),
            'production_countries': "[{'iso_3166_1': 'US', 'name': 'United States of America'}]",
            'release_date': (
                f"{rng.integers(1, 13)}/{rng.integers(1, 29)}/{year:02d}" if rng.random() < 0.97 else np.nan
            ),
            'runtime': float(rng.integers(80, 160)) if rng.random() < 0.95 else np.nan,
            'spoken_languages': "[{'iso_639_1': 'en', 'name': 'English'}]" if rng.random() < 0.95 else np.nan,
            'status': 'Released' if rng.random() < 0.97 else (np.nan if rng.random() < 0.5 else 'Rumored'),
            'tagline': f"Tagline {i}" if rng.random() < 0.5 else np.nan,
            'title': f"Movie {i}",
            'Keywords': _entries(f"{{'id': {k}, 'name': 'kw{k}'}}" for k in range(rng.integers(0, 5))),
            'cast': _entries(cast),
            'crew': _entries(crew),
            'revenue': float(np.exp(rng.normal(16, 1.5)) + (budget * 2 if budget > 1000 else 0)),
        })
    return pd.DataFrame(rows)


@pytest.fixture
def movies():
    return make_movies()


@pytest.fixture
def movies_csv(tmp_path, movies):
    path = tmp_path / "train.csv"
    movies.to_csv(path, index=False)
    return path


@pytest.fixture
def movie_factory():
    return make_movies
