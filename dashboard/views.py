# Dashboard views for statistics
from datetime import timedelta

from django.db.models import Sum, Count, F
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from deliveries.models import Delivery
from inventory.levels import low_stock_q
from inventory.models import Product, StoreStock
from main.query_params import parse_filters
from sales.models import Sale, SaleItem
from stores.models import Store
from users.access import Requester, Resource, scope_queryset
from users.models import User


def scoped(requester, resource, model):
    return scope_queryset(requester, resource, model.objects.all())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    """
    Get dashboard statistics for the stores, sales and deliveries visible to
    the requester. ``users`` is only counted for admins.
    """
    requester = Requester.from_request(request)
    store_id = parse_filters(request).get('store_id')
    today = timezone.localdate()
    yesterday = today - timedelta(days=1)

    sales_qs = scoped(requester, Resource.SALE, Sale)
    stocks_qs = scoped(requester, Resource.STOCK, StoreStock)
    stores_qs = scoped(requester, Resource.STORE, Store)
    deliveries_qs = scoped(requester, Resource.DELIVERY, Delivery)
    products_qs = scoped(requester, Resource.PRODUCT, Product)
    if store_id:
        sales_qs = sales_qs.filter(store_id=store_id)
        stocks_qs = stocks_qs.filter(store_id=store_id)
        deliveries_qs = deliveries_qs.filter(store_id=store_id)

    overall = sales_qs.aggregate(total=Sum('total'), count=Count('id'))

    # Today's sales
    today_sales = sales_qs.filter(created_at__date=today).aggregate(
        total=Sum('total'),
        count=Count('id')
    )
    yesterday_sales = sales_qs.filter(created_at__date=yesterday).aggregate(
        total=Sum('total')
    )

    today_total = float(today_sales['total'] or 0)
    yesterday_total = float(yesterday_sales['total'] or 0)
    sales_change = ((today_total - yesterday_total) / yesterday_total * 100) if yesterday_total > 0 else 0

    # Top selling products (last 30 days)
    thirty_days_ago = today - timedelta(days=30)
    top_products = SaleItem.objects.filter(
        sale__in=sales_qs.filter(created_at__date__gte=thirty_days_ago)
    ).values(
        'product__id',
        'product__name',
        'product__sku'
    ).annotate(
        total_sold=Sum('quantity'),
        revenue=Sum(F('quantity') * F('price'))
    ).order_by('-revenue')[:5]

    # Recent sales
    recent_sales = sales_qs.select_related('store', 'user').order_by('-created_at', '-id')[:10]

    # Weekly sales trend
    weekly_sales = []
    for i in range(7):
        date = today - timedelta(days=6 - i)
        daily_sales = sales_qs.filter(created_at__date=date).aggregate(
            total=Sum('total'),
            count=Count('id')
        )
        weekly_sales.append({
            'date': date.isoformat(),
            'total': float(daily_sales['total'] or 0),
            'count': daily_sales['count'] or 0
        })

    totals = {
        'revenue': float(overall['total'] or 0),
        'sales': overall['count'] or 0,
        'products': products_qs.count(),
        'stores': stores_qs.count(),
        'users': User.objects.count() if requester.is_admin else None,
        'low_stock': stocks_qs.filter(low_stock_q()).count(),
        'out_of_stock': stocks_qs.filter(quantity__lte=0).count(),
        'pending_deliveries': deliveries_qs.filter(
            status__in=[Delivery.Status.PENDING, Delivery.Status.IN_TRANSIT]
        ).count(),
    }

    store_summary = {
        'active': stores_qs.filter(status=Store.Status.ACTIVE).count(),
        'pending_approval': stores_qs.filter(status=Store.Status.PENDING_APPROVAL).count(),
        'inactive': stores_qs.filter(status=Store.Status.INACTIVE).count(),
    }

    return Response({
        'totals': totals,
        'today_sales': {
            'total': today_total,
            'count': today_sales['count'] or 0,
            'change_percent': round(sales_change, 2)
        },
        'top_selling_products': [
            {
                'id': p['product__id'],
                'name': p['product__name'],
                'sku': p['product__sku'],
                'quantity_sold': p['total_sold'],
                'revenue': float(p['revenue'] or 0)
            }
            for p in top_products
        ],
        'recent_sales': [
            {
                'id': sale.id,
                'store': sale.store.name,
                'user': sale.user.email,
                'total': float(sale.total),
                'created_at': sale.created_at
            }
            for sale in recent_sales
        ],
        'weekly_sales': weekly_sales,
        'store_summary': store_summary,
    })
