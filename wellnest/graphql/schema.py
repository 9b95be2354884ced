import strawberry

from wellnest.graphql.attendance.mutations import AttendanceMutation
from wellnest.graphql.attendance.queries import AttendanceQuery
from wellnest.graphql.catalog.mutations import CatalogMutation
from wellnest.graphql.catalog.queries import CatalogQuery
from wellnest.graphql.commerce.mutations import CommerceMutation
from wellnest.graphql.commerce.queries import CommerceQuery
from wellnest.graphql.refunds.mutations import RefundMutation
from wellnest.graphql.refunds.queries import RefundQuery
from wellnest.graphql.reservations.mutations import ReservationMutation
from wellnest.graphql.reservations.queries import ReservationQuery
from wellnest.graphql.settings.mutations import SettingsMutation
from wellnest.graphql.settings.queries import SettingsQuery


@strawberry.type
class Query(CatalogQuery, ReservationQuery, CommerceQuery, RefundQuery, AttendanceQuery, SettingsQuery):
    pass


@strawberry.type
class Mutation(
    CatalogMutation, ReservationMutation, CommerceMutation, RefundMutation, AttendanceMutation, SettingsMutation
):
    pass


schema = strawberry.Schema(query=Query, mutation=Mutation)
