from benchbro import Case
from opset import OperationSet, ProcedureRegistry

process_case = Case(
    name="process",
    case_type="cpu",
    metric_type="time",
    tags=["opset", "process"],
    warmup_iterations=5,
    min_iterations=50,
    repeats=10,
)

_ITEMS = [
    {"id": str(i), "state": "NJ" if i % 2 else "NY", "location": [i, i]}
    for i in range(200)
]


@process_case.benchmark()
def simple_set():
    data = {"a": {"b": {"c": 1}}}

    OperationSet({"$set": {"a.b.c": 2}}).process(data)


@process_case.benchmark()
def wildcard_cast_map_and_wrap():
    data = {"data": _ITEMS}
    operation_set = OperationSet(
        [
            {"$cast": {"data.$.id": "number"}},
            {"$map": {"data.$.state": {"NJ": "New Jersey", "": "Other"}}},
            {"$wrap": {"data.$.location": "coordinates"}},
        ]
    )

    operation_set.process(data)


@process_case.benchmark()
def nested_procedures():
    registry = ProcedureRegistry(
        {
            "item": [{"$move": {"id": "item_id"}}, {"$set": {"object": "item"}}],
            "page": {"$procedure": {"data.$": "item"}},
        }
    )
    operation_set = OperationSet({"$model": {".": "page"}}, registry)

    operation_set.process({"data": _ITEMS})
