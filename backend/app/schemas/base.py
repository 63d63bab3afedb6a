"""
Base schema shared by every request and response model.

The frontend speaks camelCase (`studentId`, `accessType`, ...) while models
and Python code use snake_case. Aliases bridge the two: request bodies are
accepted in either form, responses are always dumped by alias.
"""

from typing import Annotated, Any, Dict, Iterable, List

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @classmethod
    def dump(cls, obj: Any) -> Dict[str, Any]:
        """Validate an ORM row (or dict) and return its camelCase JSON form"""
        return cls.model_validate(obj).model_dump(by_alias=True, mode="json")

    @classmethod
    def dump_many(cls, objs: Iterable[Any]) -> List[Dict[str, Any]]:
        return [cls.dump(obj) for obj in objs]


def _number_to_str(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


# Accepts 3 or "3" for fields stored as text (semester on materials, courses)
LooseStr = Annotated[str, BeforeValidator(_number_to_str)]
