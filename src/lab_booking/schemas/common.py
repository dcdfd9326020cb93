from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Тело ответа об ошибке: HTTP-код и человекочитаемое описание."""

    code: int = Field(description='HTTP-код ошибки')
    detail: str = Field(description='Описание ошибки')

    model_config = ConfigDict(
        json_schema_extra={
            'example': {
                'code': 409,
                'detail': 'В занятии не осталось свободных мест',
            },
        },
    )
