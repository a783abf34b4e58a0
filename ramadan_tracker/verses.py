"""Motivational Quran verse of the day, from the alquran.cloud API or a static list."""

import logging
import random
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

ALQURAN_BASE = "https://api.alquran.cloud/v1"
EDITIONS = "quran-uthmani,en.sahih"


@dataclass(frozen=True)
class QuranVerse:
    arabic: str
    english: str
    reference: str


STATIC_VERSES = [
    QuranVerse(
        "يَا أَيُّهَا الَّذِينَ آمَنُوا كُتِبَ عَلَيْكُمُ الصِّيَامُ كَمَا كُتِبَ عَلَى الَّذِينَ مِن قَبْلِكُمْ لَعَلَّكُمْ تَتَّقُونَ",
        "O you who have believed, decreed upon you is fasting as it was decreed "
        "upon those before you that you may become righteous.",
        "Surah Al-Baqarah, 2:183",
    ),
    QuranVerse(
        "شَهْرُ رَمَضَانَ الَّذِي أُنزِلَ فِيهِ الْقُرْآنُ هُدًى لِّلنَّاسِ وَبَيِّنَاتٍ مِّنَ الْهُدَىٰ وَالْفُرْقَانِ",
        "The month of Ramadhan [is that] in which was revealed the Qur'an, a "
        "guidance for the people and clear proofs of guidance and criterion.",
        "Surah Al-Baqarah, 2:185",
    ),
    QuranVerse(
        "وَإِذَا سَأَلَكَ عِبَادِي عَنِّي فَإِنِّي قَرِيبٌ ۖ أُجِيبُ دَعْوَةَ الدَّاعِ إِذَا دَعَانِ",
        "And when My servants ask you concerning Me, indeed I am near. I respond "
        "to the invocation of the supplicant when he calls upon Me.",
        "Surah Al-Baqarah, 2:186",
    ),
    QuranVerse(
        "إِنَّ مَعَ الْعُسْرِ يُسْرًا",
        "Indeed, with hardship [will be] ease.",
        "Surah Al-Inshirah, 94:6",
    ),
    QuranVerse(
        "لَئِن شَكَرْتُمْ لَأَزِيدَنَّكُمْ",
        "If you are grateful, I will surely increase you [in favor].",
        "Surah Ibrahim, 14:7",
    ),
    QuranVerse(
        "فَاصْبِرْ صَبْرًا جَمِيلًا",
        "So be patient with gracious patience.",
        "Surah Al-Ma'arij, 70:5",
    ),
    QuranVerse(
        "ادْعُونِي أَسْتَجِبْ لَكُمْ",
        "Call upon Me; I will respond to you.",
        "Surah Ghafir, 40:60",
    ),
    QuranVerse(
        "إِنَّ اللَّهَ مَعَ الصَّابِرِينَ",
        "Indeed, Allah is with the patient.",
        "Surah Al-Baqarah, 2:153",
    ),
]

# Ayah keys (surah:ayah) the daily verse is picked from
DAILY_AYAHS = ["2:183", "2:185", "2:186", "2:153", "94:6", "14:7", "70:5", "40:60", "97:3"]


def get_random_static_verse(rng: random.Random = None) -> QuranVerse:
    rng = rng or random
    return rng.choice(STATIC_VERSES)


def fetch_verse(ayah: str, timeout: int = 10) -> QuranVerse:
    """
    Fetch one ayah in Arabic and English.
    Raises requests.RequestException or ValueError on failure.
    """
    url = f"{ALQURAN_BASE}/ayah/{ayah}/editions/{EDITIONS}"
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    body = resp.json()
    if body.get("code") != 200:
        raise ValueError(f"alquran.cloud API error: {body.get('status')}")

    data = body["data"]
    if len(data) < 2:
        raise ValueError("alquran.cloud API returned too few editions")
    arabic, english = data[0], data[1]
    surah = arabic["surah"]
    return QuranVerse(
        arabic=arabic["text"],
        english=english["text"],
        reference=f"Surah {surah['englishName']}, {surah['number']}:{arabic['numberInSurah']}",
    )


def fetch_daily_verse(day: int = None, timeout: int = 10, rng: random.Random = None) -> QuranVerse:
    """
    Verse for the given Ramadan day (random when day is None), falling back
    to a static verse if the API cannot be reached.
    """
    rng = rng or random
    if day is None:
        ayah = rng.choice(DAILY_AYAHS)
    else:
        ayah = DAILY_AYAHS[(day - 1) % len(DAILY_AYAHS)]
    try:
        return fetch_verse(ayah, timeout)
    except Exception as exc:
        logger.warning("Verse fetch failed, using static fallback: %s", exc)
        return get_random_static_verse(rng)
