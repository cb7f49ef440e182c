"""Demo plants for trying the assistant without a catalog key."""

from __future__ import annotations

from src.data.models import CareBenchmark, NewPlant, TaskType

SAMPLE_PLANTS: list[NewPlant] = [
    NewPlant(
        name="Cactus",
        scientific_names=["Cactaceae"],
        watering="Minimum",
        watering_benchmark=CareBenchmark("14-21", "days"),
        sunlight=["Full sun"],
        description="Cacti can go a long time without water. Common in dry areas and deserts.",
    ),
    NewPlant(
        name="Bonsai",
        scientific_names=["Various"],
        watering="Frequent",
        watering_benchmark=CareBenchmark("2-3", "days"),
        sunlight=["Partial shade"],
        description="Miniature trees requiring careful watering and pruning.",
    ),
    NewPlant(
        name="Monstera",
        scientific_names=["Monstera deliciosa"],
        watering="Average",
        watering_benchmark=CareBenchmark("7-10", "days"),
        sunlight=["Partial shade"],
        description="Popular tropical plant with iconic split leaves. Easy to care for.",
    ),
    NewPlant(
        name="Aloe Vera",
        scientific_names=["Aloe barbadensis miller"],
        watering="Minimum",
        watering_benchmark=CareBenchmark("7", "days"),
        sunlight=["Full sun", "Part shade"],
        description="Succulent with medicinal gel. Water deeply but rarely.",
    ),
]

# Extra non-watering chains: (plant name, type, title, interval days, first due in days)
SAMPLE_EXTRA_TASKS: list[tuple[str, TaskType, str, int, int]] = [
    ("Bonsai", TaskType.PRUNE, "Prune the dead branches", 30, 7),
    ("Monstera", TaskType.LIGHT, "Turn towards the light", 7, 1),
]
